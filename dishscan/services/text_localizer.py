"""
Text localizer: fuses inference dish names with OCR line geometry.

Matching is greedy and independent per dish. A line may be claimed by more
than one dish, and dishes are never re-assigned to improve a global score.
"""

import logging
import re
from typing import List, Optional, Sequence, Tuple

from dishscan.config.settings import ScanSettings
from dishscan.models.internal_models import InferredDish, LocalizedDish, OCRLine, PixelBox

_WHITESPACE = re.compile(r"\s+")

logger = logging.getLogger(__name__)


def normalize_text(text: str) -> str:
    """Remove all whitespace and lowercase"""
    return _WHITESPACE.sub("", text or "").lower()


def score_match(
    dish_name: str,
    line_text: str,
    whole_line_bonus: float = 0.2,
    length_slack: int = 3,
) -> Optional[float]:
    """
    Score one OCR line against a dish name.

    Both strings are normalized first. Returns None unless one contains the
    other; otherwise the length-overlap ratio ``min/max``, plus
    ``whole_line_bonus`` when the lengths differ by fewer than
    ``length_slack`` characters.
    """
    name = normalize_text(dish_name)
    line = normalize_text(line_text)
    if not name or not line:
        return None
    if name not in line and line not in name:
        return None

    score = min(len(name), len(line)) / max(len(name), len(line))
    if abs(len(name) - len(line)) < length_slack:
        score += whole_line_bonus
    return score


def to_normalized_box(bbox: PixelBox, width: int, height: int) -> Tuple[float, ...]:
    """Convert a pixel box to ``[ymin, xmin, ymax, xmax]`` on a 0-1000 scale"""
    return (
        bbox.y0 / height * 1000,
        bbox.x0 / width * 1000,
        bbox.y1 / height * 1000,
        bbox.x1 / width * 1000,
    )


class TextLocalizer:
    """Replaces placeholder dish boxes with boxes of the best matching OCR line"""

    def __init__(self, config: Optional[ScanSettings] = None):
        config = config or ScanSettings()
        self.match_threshold = config.match_threshold
        self.whole_line_bonus = config.whole_line_bonus
        self.length_slack = config.whole_line_length_slack

    def best_match(self, dish: InferredDish, lines: Sequence[OCRLine]) -> Tuple[Optional[OCRLine], float]:
        """
        Find the highest scoring candidate line for a dish.

        Ties keep the first line in engine order.
        """
        best_line = None
        best_score = 0.0
        for line in lines:
            score = score_match(dish.original_name, line.text, self.whole_line_bonus, self.length_slack)
            if score is not None and score > best_score:
                best_line, best_score = line, score
        return best_line, best_score

    def localize(
        self,
        dishes: Sequence[InferredDish],
        lines: Sequence[OCRLine],
        width: int,
        height: int,
    ) -> List[LocalizedDish]:
        """
        Localize dishes against OCR lines.

        Args:
            dishes: Dishes in inference order (preserved in the output)
            lines: OCR lines in engine order
            width: Source image width in pixels
            height: Source image height in pixels

        Returns:
            One LocalizedDish per input dish
        """
        if not lines or width <= 0 or height <= 0:
            return [LocalizedDish(dish=dish, bounding_box=tuple(dish.bounding_box)) for dish in dishes]

        localized = []
        for dish in dishes:
            line, score = self.best_match(dish, lines)
            if line is not None and score > self.match_threshold:
                localized.append(LocalizedDish(
                    dish=dish,
                    bounding_box=to_normalized_box(line.bbox, width, height),
                    is_ocr_refined=True,
                    matched_line=line,
                    match_score=score,
                ))
            else:
                localized.append(LocalizedDish(dish=dish, bounding_box=tuple(dish.bounding_box)))

        refined = sum(1 for item in localized if item.is_ocr_refined)
        logger.info(f"Refined {refined}/{len(localized)} dish locations from {len(lines)} OCR lines")
        return localized
