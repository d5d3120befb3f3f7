"""Incremental first-fit clustering of a color sequence."""
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence

from .colors import clamp_channel, distance, round_half_up
from .types import AnalysisResult, Cluster, Color


@dataclass
class ClustererConfig:
    threshold: float = 30.0


class ColorClusterer:
    """Single-pass clusterer deriving average, dominant and least-used colors.

    Each color joins the first cluster, in creation order, whose centroid lies
    strictly closer than ``threshold``; otherwise it seeds a new cluster.
    Clusters are never merged after creation, so the result depends on input
    order.
    """

    def __init__(self, config: ClustererConfig | None = None) -> None:
        self._config = config or ClustererConfig()

    def cluster(self, colors: Sequence[Color]) -> List[Cluster]:
        clusters: List[Cluster] = []
        for color in colors:
            for cluster in clusters:
                if distance(color, cluster) < self._config.threshold:
                    cluster.add(color)
                    break
            else:
                clusters.append(Cluster.seed(color))
        # sorted() is stable: equal counts keep creation order
        return sorted(clusters, key=lambda item: item.count, reverse=True)

    def analyze(self, colors: Sequence[Color]) -> Optional[AnalysisResult]:
        if not colors:
            return None

        count = len(colors)
        average = Color(
            round_half_up(sum(c.r for c in colors) / count),
            round_half_up(sum(c.g for c in colors) / count),
            round_half_up(sum(c.b for c in colors) / count),
        )

        clusters = self.cluster(colors)
        return AnalysisResult(
            average=average,
            dominant=_centroid(clusters[0]),
            least=_centroid(clusters[-1]),
        )


def _centroid(cluster: Cluster) -> Color:
    return Color(clamp_channel(cluster.r), clamp_channel(cluster.g), clamp_channel(cluster.b))


def analyze_colors(colors: Sequence[Color], threshold: float = 30.0) -> Optional[AnalysisResult]:
    """Convenience wrapper returning ``None`` for an empty sequence."""
    return ColorClusterer(ClustererConfig(threshold=threshold)).analyze(colors)


__all__ = ["ClustererConfig", "ColorClusterer", "analyze_colors"]
