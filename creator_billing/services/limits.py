import enum
from dataclasses import dataclass
from typing import Dict, Optional


class LimitKind(str, enum.Enum):
    PRODUCTS = "products"
    COLLECTIONS = "collections"
    POSTS_PER_DAY = "postsPerDay"


# None means unlimited
FREE_LIMITS: Dict[LimitKind, Optional[int]] = {
    LimitKind.PRODUCTS: 15,
    LimitKind.COLLECTIONS: 3,
    LimitKind.POSTS_PER_DAY: 10,
}

PRO_LIMITS: Dict[LimitKind, Optional[int]] = {
    LimitKind.PRODUCTS: None,
    LimitKind.COLLECTIONS: None,
    LimitKind.POSTS_PER_DAY: 50,
}


@dataclass(frozen=True)
class LimitCheck:
    allowed: bool
    current: int
    max: Optional[int]
    remaining: Optional[int]
    percentage: float


def limits_for(has_creator_pro: bool) -> Dict[LimitKind, Optional[int]]:
    return PRO_LIMITS if has_creator_pro else FREE_LIMITS


def check_limit(kind: LimitKind, current: int, has_creator_pro: bool) -> LimitCheck:
    maximum = limits_for(has_creator_pro)[LimitKind(kind)]
    if maximum is None:
        return LimitCheck(allowed=True, current=current, max=None, remaining=None, percentage=0.0)
    return LimitCheck(
        allowed=current < maximum,
        current=current,
        max=maximum,
        remaining=max(0, maximum - current),
        percentage=current / maximum * 100,
    )
