import math

from src.trivia.domain.models import FanRank, ResultLevel

# Ordered by threshold, ascending.
FAN_RANKS: tuple[FanRank, ...] = (
    FanRank(0, "Turysta w Wilkowyjach", "🧳"),
    FanRank(100, "Gość u Lucy", "🚶"),
    FanRank(250, "Bywalec u Japycza", "🍺"),
    FanRank(500, "Stały bywalec ławeczki", "🪑"),
    FanRank(900, "Mieszkaniec Wilkowyj", "🏡"),
    FanRank(1400, "Pracownik urzędu gminy", "📋"),
    FanRank(2000, "Stażysta u wójta", "🖊️"),
    FanRank(2700, "Sekretarz gminy", "📑"),
    FanRank(3500, "Zastępca wójta", "🤝"),
    FanRank(4500, "Radny gminy", "🏛️"),
    FanRank(6000, "Prawa ręka wójta", "⭐"),
    FanRank(8000, "Wójt Wilkowyj", "👑"),
)

# Ordered by min_percent, descending.
RESULT_LEVELS: tuple[ResultLevel, ...] = (
    ResultLevel(95, "Wójt Wilkowyj", "👑"),
    ResultLevel(80, "Radny gminy", "🏛️"),
    ResultLevel(65, "Stały bywalec ławeczki", "🪑"),
    ResultLevel(45, "Mieszkaniec Wilkowyj", "🏡"),
    ResultLevel(25, "Nowy w gminie", "🚗"),
    ResultLevel(0, "Turysta", "🗺️"),
)


def get_current_rank(points: int) -> FanRank:
    """Highest rank whose threshold does not exceed `points`."""
    current = FAN_RANKS[0]
    for rank in FAN_RANKS:
        if points >= rank.points:
            current = rank
        else:
            break
    return current


def get_next_rank(points: int) -> FanRank | None:
    """Lowest rank above `points`, or None once the top rank is reached."""
    for rank in FAN_RANKS:
        if points < rank.points:
            return rank
    return None


def get_points_to_next_rank(points: int) -> int:
    next_rank = get_next_rank(points)
    if next_rank is None:
        return 0
    return next_rank.points - points


def get_progress_percent(points: int) -> int:
    current = get_current_rank(points)
    next_rank = get_next_rank(points)
    if next_rank is None:
        return 100
    span = next_rank.points - current.points
    return math.floor((points - current.points) * 100 / span + 0.5)


def is_rank_up(points_before: int, points_after: int) -> bool:
    return get_current_rank(points_after).points > get_current_rank(points_before).points


def get_result_level(percent: int) -> ResultLevel:
    for level in RESULT_LEVELS:
        if percent >= level.min_percent:
            return level
    return RESULT_LEVELS[-1]
