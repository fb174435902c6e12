import pytest

from zx_scr_converter.colorspace import DistanceMetric
from zx_scr_converter.dither import (
    CELL_DIFFUSION_GLOBAL,
    AtkinsonDither,
    CellDitherMethod,
    DitherMethod,
    buffer_pixel,
    dither,
    get_cell_dither,
    get_dither,
    hilbert_curve,
    morton_curve,
    riemersma_weights,
)
from zx_scr_converter.palette import DEFAULT_PALETTE

WIDTH = 16
HEIGHT = 12


def _gradient_buffer():
    buffer = []
    for y in range(HEIGHT):
        for x in range(WIDTH):
            buffer.extend((x * 16.0, y * 21.0, (x + y) * 9.0))
    return buffer


@pytest.mark.parametrize("method", list(DitherMethod))
def test_dither_output_uses_only_palette_colors(method: DitherMethod) -> None:
    colors = DEFAULT_PALETTE.colors
    buffer = _gradient_buffer()
    dither(buffer, WIDTH, HEIGHT, colors, method)
    for y in range(HEIGHT):
        for x in range(WIDTH):
            assert buffer_pixel(buffer, WIDTH, x, y) in colors


DIFFUSION_METHODS = [
    DitherMethod.NONE,
    DitherMethod.FLOYD_STEINBERG,
    DitherMethod.JARVIS,
    DitherMethod.STUCKI,
    DitherMethod.BURKES,
    DitherMethod.SIERRA,
    DitherMethod.SIERRA_LITE,
    DitherMethod.SIERRA2,
    DitherMethod.ATKINSON,
    DitherMethod.SERPENTINE,
    DitherMethod.RIEMERSMA,
]


@pytest.mark.parametrize("method", DIFFUSION_METHODS)
def test_diffusion_keeps_exact_palette_images(method: DitherMethod) -> None:
    colors = ((0, 0, 0), (255, 255, 255))
    buffer = []
    for y in range(HEIGHT):
        for x in range(WIDTH):
            buffer.extend((255.0, 255.0, 255.0) if (x + y) % 2 else (0.0, 0.0, 0.0))
    expected = list(buffer)
    dither(buffer, WIDTH, HEIGHT, colors, method, DistanceMetric.WEIGHTED_RGB)
    assert buffer == expected


def test_every_method_has_an_algorithm() -> None:
    for method in DitherMethod:
        assert get_dither(method).method == method
    for method in CellDitherMethod:
        assert get_cell_dither(method).method == method


def test_atkinson_spreads_three_quarters_of_the_error() -> None:
    assert sum(weight for _, _, weight in AtkinsonDither.kernel) == pytest.approx(0.75)


def test_mid_gray_error_diffusion_mixes_black_and_white() -> None:
    colors = ((0, 0, 0), (255, 255, 255))
    buffer = [128.0] * (WIDTH * HEIGHT * 3)
    dither(buffer, WIDTH, HEIGHT, colors, DitherMethod.FLOYD_STEINBERG, DistanceMetric.WEIGHTED_RGB)
    whites = sum(1 for i in range(0, len(buffer), 3) if buffer[i] == 255)
    assert 0.35 < whites / (WIDTH * HEIGHT) < 0.65


def test_hilbert_curve_visits_every_cell_once() -> None:
    points = hilbert_curve(3)
    assert len(points) == 64
    assert len(set(points)) == 64
    for (x0, y0), (x1, y1) in zip(points, points[1:]):
        assert abs(x0 - x1) + abs(y0 - y1) == 1


def test_riemersma_weights_sum_to_one() -> None:
    weights = riemersma_weights()
    assert len(weights) == 16
    assert sum(weights) == pytest.approx(1.0)


def test_morton_curve_covers_block() -> None:
    assert len(morton_curve(8)) == 64
    assert len(morton_curve(2)) == 16
    assert set(morton_curve(1)) == {(x, 0) for x in range(8)}


@pytest.mark.parametrize("method", list(CellDitherMethod))
def test_cell_dither_returns_one_byte_per_line(method: CellDitherMethod) -> None:
    ink = (0, 0, 215)
    paper = (215, 215, 0)
    pixels = [(x * 30, x * 30, 100) for _ in range(4) for x in range(8)]
    rows = get_cell_dither(method).bitmap(pixels, 4, ink, paper, origin=(8, 4))
    assert len(rows) == 4
    assert all(0 <= value <= 0xFF for value in rows)


@pytest.mark.parametrize(
    "method",
    [
        CellDitherMethod.NONE,
        CellDitherMethod.FLOYD_STEINBERG,
        CellDitherMethod.ATKINSON,
        CellDitherMethod.SIERRA2,
        CellDitherMethod.SERPENTINE,
        CellDitherMethod.RIEMERSMA,
    ],
)
def test_cell_dither_exact_colors(method: CellDitherMethod) -> None:
    ink = (0, 0, 215)
    paper = (215, 215, 0)
    pixels = [ink if x < 4 else paper for _ in range(8) for x in range(8)]
    rows = get_cell_dither(method).bitmap(pixels, 8, ink, paper)
    assert rows == [0xF0] * 8


def test_cell_diffusion_methods_map_to_global_algorithms() -> None:
    assert CELL_DIFFUSION_GLOBAL[CellDitherMethod.FLOYD_STEINBERG] == DitherMethod.FLOYD_STEINBERG
    assert CellDitherMethod.ORDERED not in CELL_DIFFUSION_GLOBAL
