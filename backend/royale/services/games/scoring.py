import math
from typing import Dict, List, Tuple

from .state import Response, RoundType


ROUND_SEQUENCE = (
    RoundType.COLOR_TAP,
    RoundType.SWIPE,
    RoundType.SHAKE,
    RoundType.TAP_SPAM,
)
COLORS = ('RED', 'BLUE', 'YELLOW', 'PURPLE')
DIRECTIONS = ('UP', 'DOWN', 'LEFT', 'RIGHT')

MAX_REACTION_POINTS = 1000
MIN_CORRECT_POINTS = 100
WRONG_ANSWER_PENALTY = -200
VOLUME_POINTS_PER_UNIT = {
    RoundType.SHAKE: 10,
    RoundType.TAP_SPAM: 5,
}
PLACEMENT_BONUS = (500, 300, 100)


def round_type_for(round_number: int) -> RoundType:
    """Fixed sequence: round 1 is COLOR_TAP, 2 SWIPE, 3 SHAKE, 4 TAP_SPAM, then it wraps."""
    return ROUND_SEQUENCE[(round_number - 1) % len(ROUND_SEQUENCE)]


def build_round_data(round_type: RoundType, rng, volume_duration_ms: int) -> Dict:
    if round_type is RoundType.COLOR_TAP:
        return {'color': rng.choice(COLORS)}
    if round_type is RoundType.SWIPE:
        return {'direction': rng.choice(DIRECTIONS)}
    if round_type.is_volume:
        return {'duration': volume_duration_ms}
    raise ValueError(f'Not a reflex round: {round_type}')


def target_for(round_type: RoundType, round_data: Dict):
    if round_type is RoundType.COLOR_TAP:
        return round_data.get('color')
    if round_type is RoundType.SWIPE:
        return round_data.get('direction')
    return None


def reaction_points(correct: bool, response_time_ms: float) -> int:
    """Points for a correctness round answer.

    Correct answers earn ``1000 - 2 * ms`` floored at 100; wrong answers
    always cost 200, however fast they were.
    """
    if not correct:
        return WRONG_ANSWER_PENALTY
    # Past 450 ms every correct answer earns the floor
    response_time_ms = min(response_time_ms, MAX_REACTION_POINTS)
    return max(MIN_CORRECT_POINTS, MAX_REACTION_POINTS - math.floor(response_time_ms * 2))


def score_response(round_type: RoundType, round_data: Dict, value, response_time_ms: float) -> Tuple[bool, int]:
    correct = value == target_for(round_type, round_data)
    return correct, reaction_points(correct, response_time_ms)


def score_volume_round(round_type: RoundType, responses: Dict[str, Response]) -> List[Tuple[str, int, int]]:
    """Rank self-reported counts and return ``(player_id, count, points)`` best first.

    Python's sort is stable, so equal counts keep submission order and the
    earlier submitter takes the higher placement bonus.
    """
    per_unit = VOLUME_POINTS_PER_UNIT[round_type]
    ranked = sorted(responses.items(), key=lambda item: item[1].count, reverse=True)
    results = []
    for index, (player_id, response) in enumerate(ranked):
        points = response.count * per_unit
        if index < len(PLACEMENT_BONUS):
            points += PLACEMENT_BONUS[index]
        results.append((player_id, response.count, points))
    return results
