from __future__ import annotations

import random

from src.pipeline.clusterer import ClustererConfig, ColorClusterer, analyze_colors
from src.pipeline.colors import round_half_up
from src.pipeline.types import AnalysisResult, Color


def test_identical_colors_collapse_to_one_summary() -> None:
    colors = [Color(10, 20, 30)] * 240
    result = analyze_colors(colors)
    assert result == AnalysisResult(
        average=Color(10, 20, 30),
        dominant=Color(10, 20, 30),
        least=Color(10, 20, 30),
    )


def test_majority_and_minority_colors() -> None:
    red = Color(255, 0, 0)
    blue = Color(0, 0, 255)
    colors = [blue if index % 6 == 5 else red for index in range(240)]
    assert colors.count(red) == 200 and colors.count(blue) == 40

    result = analyze_colors(colors)
    assert result is not None
    assert result.dominant == red
    assert result.least == blue
    # 255 * 200 / 240 = 212.5 and 255 * 40 / 240 = 42.5, both rounded up
    assert result.average == Color(213, 0, 43)


def test_colors_within_threshold_share_a_single_cluster() -> None:
    colors = [Color(100, 100, 100), Color(110, 100, 100), Color(100, 110, 100), Color(105, 105, 105)]
    clusterer = ColorClusterer()
    clusters = clusterer.cluster(colors)
    assert len(clusters) == 1
    assert clusters[0].count == 4

    result = clusterer.analyze(colors)
    assert result is not None
    assert result.dominant == result.least == result.average == Color(104, 104, 101)


def test_average_is_rounded_component_mean() -> None:
    rng = random.Random(11)
    colors = [Color(rng.randrange(256), rng.randrange(256), rng.randrange(256)) for _ in range(97)]
    result = analyze_colors(colors)
    assert result is not None
    assert result.average == Color(
        round_half_up(sum(c.r for c in colors) / len(colors)),
        round_half_up(sum(c.g for c in colors) / len(colors)),
        round_half_up(sum(c.b for c in colors) / len(colors)),
    )


def test_dominant_and_least_come_from_extreme_counts() -> None:
    rng = random.Random(3)
    bases = [(20, 20, 20), (200, 40, 40), (40, 200, 40), (40, 40, 220)]
    weights = [5, 30, 12, 1]
    colors = []
    for _ in range(150):
        base = rng.choices(bases, weights=weights)[0]
        colors.append(Color(*(min(255, max(0, value + rng.randint(-4, 4))) for value in base)))

    clusterer = ColorClusterer()
    clusters = clusterer.cluster(colors)
    counts = [cluster.count for cluster in clusters]
    assert counts == sorted(counts, reverse=True)
    assert sum(counts) == len(colors)
    assert all(count >= 1 for count in counts)

    result = clusterer.analyze(colors)
    assert result is not None
    top, bottom = clusters[0], clusters[-1]
    assert result.dominant == Color(round_half_up(top.r), round_half_up(top.g), round_half_up(top.b))
    assert result.least == Color(round_half_up(bottom.r), round_half_up(bottom.g), round_half_up(bottom.b))


def test_threshold_is_strict() -> None:
    colors = [Color(0, 0, 0), Color(30, 0, 0)]
    clusters = ColorClusterer(ClustererConfig(threshold=30.0)).cluster(colors)
    assert len(clusters) == 2

    result = analyze_colors(colors)
    assert result is not None
    # equal counts keep creation order
    assert result.dominant == Color(0, 0, 0)
    assert result.least == Color(30, 0, 0)


def test_first_fit_prefers_earliest_cluster() -> None:
    colors = [Color(0, 0, 0), Color(40, 0, 0), Color(20, 0, 0)]
    clusters = ColorClusterer().cluster(colors)
    assert [cluster.count for cluster in clusters] == [2, 1]
    assert clusters[0].r == 10.0
    assert clusters[1].r == 40.0


def test_empty_sequence_yields_no_result() -> None:
    assert analyze_colors([]) is None
    assert ColorClusterer().analyze([]) is None
