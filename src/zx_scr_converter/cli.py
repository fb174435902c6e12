"""Command line interface for the ZX Spectrum screen converter."""

from __future__ import annotations

import argparse
import sys
from enum import Enum
from pathlib import Path
from typing import Iterable, List, Optional, Type, TypeVar

from PIL import Image

from .adjust import Adjustments, auto_brightness
from .asm_export import export_border_asm
from .capabilities import AlphaMask
from .colorspace import DistanceMetric
from .config import SETTINGS, configure_logging
from .decoder import GigascreenMode, RenderOptions, decode
from .dither import CellDitherMethod, DitherMethod
from .encoder import (
    DEFAULT_SCA_DELAY,
    ConversionRequest,
    FitMode,
    alpha_mask,
    detect_screen_region,
    encode,
    encode_animation,
)
from .errors import ConversionError
from .formats import PATTERNS_53C, ScreenFormat, detect_format, get_descriptor
from .palette import PALETTES, format_palette_text, get_palette, parse_color
from .sca import (
    count_duplicate_frames,
    dump_sca,
    export_frames,
    frame_delay_ms,
    has_loop_frame,
    parse_sca_header,
    read_sca,
    remove_duplicate_frames,
    set_delay,
    trim_frames,
    trim_loop_frame,
)

IMAGE_SUFFIXES = (".png", ".gif", ".bmp", ".jpg", ".jpeg", ".webp")

E = TypeVar("E", bound=Enum)


def iter_images(paths: Iterable[str]) -> List[Path]:
    results: List[Path] = []
    for raw in paths:
        path = Path(raw)
        if path.is_file():
            if path.suffix.lower() not in IMAGE_SUFFIXES:
                raise ConversionError(f"Unsupported file type: {path}")
            results.append(path)
        elif path.is_dir():
            for entry in sorted(path.iterdir()):
                if entry.is_file() and entry.suffix.lower() in IMAGE_SUFFIXES:
                    results.append(entry)
        else:
            raise ConversionError(f"Input path does not exist: {path}")
    if not results:
        raise ConversionError("No image files were found in the provided inputs.")
    return results


def load_image(path: Path) -> Image.Image:
    try:
        with Image.open(path) as img:
            return img.copy()
    except FileNotFoundError as exc:
        raise ConversionError(f"Input file not found: {path}") from exc
    except OSError as exc:
        raise ConversionError(f"Failed to read image: {path}") from exc


def read_input(path: Path) -> bytes:
    try:
        return path.read_bytes()
    except FileNotFoundError as exc:
        raise ConversionError(f"Input file not found: {path}") from exc


def parse_enum(cls: Type[E], value: str, label: str) -> E:
    try:
        return cls(value)
    except ValueError:
        known = ", ".join(member.value for member in cls)
        raise ConversionError(f"Unknown {label} {value!r} (known: {known})") from None


def check_targets(targets: Iterable[Path], force: bool) -> None:
    conflicts = [str(target) for target in targets if target.exists() and not force]
    if conflicts:
        raise ConversionError(
            "Output files already exist (use --force to overwrite):\n" + "\n".join(conflicts)
        )


def write_output(target: Path, data: bytes) -> None:
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_bytes(data)
    print(f"wrote {target}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="zx-scr-converter",
        description=(
            "Convert images into ZX Spectrum screens and render screens back to PNG.\n"
            "Formats: " + ", ".join(fmt.value for fmt in ScreenFormat) + "\n"
            "Defaults for --palette, --distance and --dither come from ZXSCR_PALETTE,\n"
            "ZXSCR_DISTANCE and ZXSCR_DITHER; ZXSCR_LOG_LEVEL sets the log level."
        ),
        formatter_class=argparse.RawTextHelpFormatter,
    )
    parser.add_argument("--log-level", default=None, help="Logging level (default: ZXSCR_LOG_LEVEL or WARNING)")
    sub = parser.add_subparsers(dest="command", required=True)

    convert = sub.add_parser(
        "convert",
        help="Convert images to screen files",
        formatter_class=argparse.RawTextHelpFormatter,
    )
    convert.add_argument("inputs", nargs="+", help="Image files or folders containing images (non-recursive)")
    convert.add_argument("-o", "--output-dir", required=True, help="Destination directory")
    convert.add_argument(
        "--format",
        choices=[fmt.value for fmt in ScreenFormat],
        default=ScreenFormat.SCR.value,
        help="Output format; with sca all inputs become frames of one animation",
    )
    convert.add_argument(
        "--dither",
        default=SETTINGS.dither,
        help="Image dither: " + ", ".join(m.value for m in DitherMethod),
    )
    convert.add_argument(
        "--cell-dither",
        choices=[m.value for m in CellDitherMethod],
        help="Dither each attribute block between its own two colors instead",
    )
    convert.add_argument("--palette", default=SETTINGS.palette, help="Named palette (see 'palettes')")
    convert.add_argument(
        "--distance",
        default=SETTINGS.distance,
        help="Color distance: " + ", ".join(m.value for m in DistanceMetric),
    )
    convert.add_argument(
        "--fit",
        choices=[m.value for m in FitMode],
        default=FitMode.FIT.value,
        help="How the source is scaled onto the screen",
    )
    convert.add_argument("--crop", nargs=4, type=int, metavar=("X", "Y", "W", "H"), help="Crop the source first")
    convert.add_argument(
        "--auto-crop",
        action="store_true",
        help="Crop the 256x192 screen out of an emulator screenshot",
    )
    convert.add_argument(
        "--alpha-mask",
        action="store_true",
        help="Leave transparent source pixels out of color selection",
    )
    convert.add_argument(
        "--pattern",
        choices=sorted(PATTERNS_53C),
        default="checker",
        help="Cell pattern for 53c output",
    )
    convert.add_argument("--brightness", type=int, default=0, help="-100 to 100")
    convert.add_argument(
        "--auto-brightness",
        action="store_true",
        help="Pick the brightness from the mean luma of each source image",
    )
    convert.add_argument("--contrast", type=int, default=0, help="-100 to 100")
    convert.add_argument("--saturation", type=int, default=0, help="-100 to 100")
    convert.add_argument("--gamma", type=float, default=1.0, help="Gamma curve (> 0)")
    convert.add_argument("--grayscale", action="store_true", help="Convert the source to grayscale")
    convert.add_argument("--sharpness", type=int, default=0, help="Unsharp mask amount 0-100")
    convert.add_argument("--smoothing", type=int, default=0, help="Edge-preserving smoothing 0-100")
    convert.add_argument("--black-point", type=int, default=0, help="Levels black point")
    convert.add_argument("--white-point", type=int, default=255, help="Levels white point")
    convert.add_argument(
        "--balance",
        nargs=3,
        type=int,
        default=(0, 0, 0),
        metavar=("R", "G", "B"),
        help="Color balance per channel, -100 to 100",
    )
    convert.add_argument(
        "--delay",
        type=int,
        default=DEFAULT_SCA_DELAY,
        help="SCA frame delay in 20 ms units",
    )
    convert.add_argument("--border", type=int, default=0, help="SCA border color 0-7")
    convert.add_argument("--prefix", default="", help="Optional prefix for output filenames")
    convert.add_argument("--suffix", default="", help="Optional suffix for output filenames")
    convert.add_argument("-f", "--force", action="store_true", help="Overwrite existing files")
    convert.set_defaults(func=run_convert)

    render = sub.add_parser("render", help="Render a screen file to PNG")
    render.add_argument("input", help="Screen file")
    render.add_argument("-o", "--output", required=True, help="PNG file to write")
    render.add_argument("--format", choices=[fmt.value for fmt in ScreenFormat], help="Override format detection")
    render.add_argument("--palette", default=SETTINGS.palette, help="Named palette")
    render.add_argument("--frame", type=int, default=0, help="SCA frame to render")
    render.add_argument("--flash", action="store_true", help="Render the inverted flash phase")
    render.add_argument("--no-attributes", action="store_true", help="White ink on black paper")
    render.add_argument("--no-border", action="store_true", help="Skip the BSC/BMC4 border")
    render.add_argument(
        "--gigascreen",
        choices=[m.value for m in GigascreenMode],
        default=GigascreenMode.AVERAGE.value,
    )
    render.add_argument("--rgb3-plane", choices=["r", "g", "b"], help="Show one RGB3 plane")
    render.add_argument("--pattern", choices=sorted(PATTERNS_53C), default="checker", help="53c cell pattern")
    render.add_argument("--mono-ink", help="Mono ink color (#RRGGBB or r,g,b)")
    render.add_argument("--mono-paper", help="Mono paper color (#RRGGBB or r,g,b)")
    render.add_argument("--font", help="768-byte font for SPECSCII")
    render.add_argument("--scale", type=int, default=1, help="Integer zoom factor")
    render.add_argument("-f", "--force", action="store_true", help="Overwrite an existing file")
    render.set_defaults(func=run_render)

    info = sub.add_parser("info", help="Show the detected format of screen files")
    info.add_argument("inputs", nargs="+", help="Screen files")
    info.set_defaults(func=run_info)

    asm = sub.add_parser("asm", help="Export a BSC screen as an sjasmplus border program")
    asm.add_argument("input", help="BSC file")
    asm.add_argument("-o", "--output", required=True, help="ASM file to write")
    asm.add_argument("--name", help="Base name for SAVESNA/INCBIN (default: input stem)")
    asm.add_argument("--incbin", action="store_true", help="INCBIN the screen instead of DB lines")
    asm.add_argument("-f", "--force", action="store_true", help="Overwrite an existing file")
    asm.set_defaults(func=run_asm)

    sca = sub.add_parser(
        "sca",
        help="Edit an SCA animation or export its frames",
        formatter_class=argparse.RawTextHelpFormatter,
    )
    sca.add_argument("input", help="SCA file")
    sca.add_argument("-o", "--output", help="SCA file to write")
    sca.add_argument("--trim", nargs=2, type=int, metavar=("START", "END"), help="Drop frames from both ends")
    sca.add_argument("--dedupe", action="store_true", help="Merge identical consecutive frames")
    sca.add_argument("--trim-loop", action="store_true", help="Drop a last frame that repeats the first")
    sca.add_argument("--delay", type=int, help="Set every frame delay (20 ms units)")
    sca.add_argument("--export", metavar="DIR", help="Write every frame as a separate file")
    sca.add_argument("--export-kind", choices=["scr", "53c"], default="scr", help="Frame file type for --export")
    sca.add_argument("-f", "--force", action="store_true", help="Overwrite existing files")
    sca.set_defaults(func=run_sca)

    palettes = sub.add_parser("palettes", help="List the named palettes")
    palettes.set_defaults(func=run_palettes)

    return parser


def build_adjustments(args: argparse.Namespace, brightness: Optional[int] = None) -> Adjustments:
    r, g, b = args.balance
    adjustments = Adjustments(
        brightness=args.brightness if brightness is None else brightness,
        contrast=args.contrast,
        saturation=args.saturation,
        gamma=args.gamma,
        grayscale=args.grayscale,
        sharpness=args.sharpness,
        smoothing=args.smoothing,
        black_point=args.black_point,
        white_point=args.white_point,
        balance_r=r,
        balance_g=g,
        balance_b=b,
    )
    adjustments.validate()
    return adjustments


def build_request(image: Image.Image, fmt: ScreenFormat, args: argparse.Namespace) -> ConversionRequest:
    crop = tuple(args.crop) if args.crop else None
    if crop is None and args.auto_crop:
        crop = detect_screen_region(image)
    brightness = auto_brightness(image) if args.auto_brightness else None
    return ConversionRequest(
        image=image,
        format=fmt,
        palette=get_palette(args.palette),
        dither=parse_enum(DitherMethod, args.dither, "dither"),
        cell_dither=CellDitherMethod(args.cell_dither) if args.cell_dither else None,
        metric=parse_enum(DistanceMetric, args.distance, "distance"),
        fit=FitMode(args.fit),
        crop=crop,
        adjustments=build_adjustments(args, brightness),
        pattern=args.pattern,
    )


def output_name(path: Path, args: argparse.Namespace, extension: str) -> str:
    return f"{args.prefix}{path.stem}{args.suffix}.{extension}"


def run_convert(args: argparse.Namespace) -> None:
    fmt = ScreenFormat(args.format)
    inputs = iter_images(args.inputs)
    output_dir = Path(args.output_dir)
    extension = get_descriptor(fmt).extension

    if fmt == ScreenFormat.SCA:
        target = output_dir / output_name(inputs[0], args, extension)
        check_targets([target], args.force)
        requests = [build_request(load_image(path), ScreenFormat.SCR, args) for path in inputs]
        data = encode_animation(requests, [args.delay] * len(requests), border=args.border)
        write_output(target, data)
        return

    names = [output_name(path, args, extension) for path in inputs]
    if len(set(names)) != len(names):
        raise ConversionError("Duplicate output names would occur; use distinct input names")
    targets = [output_dir / name for name in names]
    check_targets(targets, args.force)

    for path, target in zip(inputs, targets):
        request = build_request(load_image(path), fmt, args)
        mask = alpha_mask(request) if args.alpha_mask else None
        write_output(target, encode(request, mask=mask))


def run_render(args: argparse.Namespace) -> None:
    path = Path(args.input)
    target = Path(args.output)
    check_targets([target], args.force)
    data = read_input(path)
    fmt = ScreenFormat(args.format) if args.format else detect_format(path.name, len(data))
    if args.scale < 1:
        raise ConversionError("Scale must be 1 or greater")

    options = RenderOptions(
        flash_phase=args.flash,
        show_attributes=not args.no_attributes,
        pattern=args.pattern,
        gigascreen=GigascreenMode(args.gigascreen),
        rgb3_plane=args.rgb3_plane,
        mono_ink=parse_color(args.mono_ink) if args.mono_ink else None,
        mono_paper=parse_color(args.mono_paper) if args.mono_paper else None,
        font=read_input(Path(args.font)) if args.font else None,
        frame=args.frame,
        show_border=not args.no_border,
    )
    image = decode(data, fmt, get_palette(args.palette), options=options)
    if args.scale > 1:
        image = image.resize((image.width * args.scale, image.height * args.scale), Image.NEAREST)
    target.parent.mkdir(parents=True, exist_ok=True)
    image.save(target, format="PNG")
    print(f"wrote {target}")


def describe(path: Path) -> List[str]:
    data = read_input(path)
    fmt = detect_format(path.name, len(data))
    descriptor = get_descriptor(fmt)
    lines = [f"{path}: {descriptor.name} ({len(data)} bytes)"]
    if fmt == ScreenFormat.SCA:
        header = parse_sca_header(data)
        if header is None:
            lines.append("  invalid SCA header")
            return lines
        delays = data[header.payload_offset:header.payload_offset + header.frame_count]
        total = sum(frame_delay_ms(d) for d in delays)
        lines.append(f"  version {header.version}, {header.width}x{header.height}, border {header.border}")
        lines.append(f"  {header.frame_count} frames, payload type {header.payload_type}, {total} ms")
    return lines


def run_info(args: argparse.Namespace) -> None:
    for raw in args.inputs:
        for line in describe(Path(raw)):
            print(line)


def run_asm(args: argparse.Namespace) -> None:
    path = Path(args.input)
    target = Path(args.output)
    check_targets([target], args.force)
    source = export_border_asm(read_input(path), name=args.name or path.stem, incbin=args.incbin)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(source)
    print(f"wrote {target}")


def run_sca(args: argparse.Namespace) -> None:
    path = Path(args.input)
    if not args.output and not args.export:
        raise ConversionError("Nothing to write: pass -o and/or --export")
    animation = read_sca(read_input(path))
    print(
        f"{path}: {animation.frame_count} frames, "
        f"{count_duplicate_frames(animation)} duplicates, "
        f"loop frame: {'yes' if has_loop_frame(animation) else 'no'}"
    )

    if args.trim:
        animation = trim_frames(animation, *args.trim)
    if args.dedupe:
        animation = remove_duplicate_frames(animation)
    if args.trim_loop:
        animation = trim_loop_frame(animation)
    if args.delay is not None:
        animation = set_delay(animation, args.delay)

    targets = []
    frames = []
    if args.export:
        frames = export_frames(animation, args.export_kind)
        export_dir = Path(args.export)
        targets = [export_dir / f"{path.stem}_{i:03d}.{args.export_kind}" for i in range(len(frames))]
    if args.output:
        targets.append(Path(args.output))
    check_targets(targets, args.force)

    for target, frame in zip(targets, frames):
        write_output(target, frame)
    if args.output:
        write_output(Path(args.output), dump_sca(animation))


def run_palettes(args: argparse.Namespace) -> None:
    for name, palette in PALETTES.items():
        print(f"{name}: {palette.title}")
        print(f"  {format_palette_text(palette)}")


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level)

    try:
        args.func(args)
        return 0
    except ConversionError as exc:
        print(exc, file=sys.stderr)
        return 1


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
