"""Progress reporting across sequential library passes."""

from collections.abc import Callable


class ProgressHandler:
    """Maps an item's position within a pass onto a slice of the overall progress.

    Several passes (episodes, seasons, series) can share one progress report by
    each owning a disjoint ``initial..final`` range.
    """

    def __init__(
        self,
        report: Callable[[float], None],
        initial: float = 0.0,
        final: float = 100.0,
    ):
        self._report = report
        self.initial = initial
        self.final = final

    def percentage(self, index: int, total: int) -> float:
        """Absolute percentage for item ``index`` of ``total``."""
        if total <= 0:
            return self.initial
        return self.initial + (index / total) * (self.final - self.initial)

    def progress(self, index: int, total: int) -> None:
        self._report(self.percentage(index, total))

    def set_progress_to_initial(self) -> None:
        self._report(self.initial)

    def set_progress_to_final(self) -> None:
        self._report(self.final)
