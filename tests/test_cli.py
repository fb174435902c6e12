from pathlib import Path

from PIL import Image

from zx_scr_converter.border import uniform_border
from zx_scr_converter.cli import main
from zx_scr_converter.sca import build_sca, read_sca


def _write_png(directory: Path, name: str, size=(64, 48)) -> Path:
    path = directory / name
    image = Image.new("RGB", size)
    image.putdata([(x * 4, y * 5, 128) for y in range(size[1]) for x in range(size[0])])
    image.save(path)
    return path


def test_palettes_lists_names(capsys) -> None:
    assert main(["palettes"]) == 0
    out = capsys.readouterr().out
    assert "default: Default" in out
    assert "0: #000000" in out


def test_convert_writes_and_refuses_existing(tmp_path: Path, capsys) -> None:
    png = _write_png(tmp_path, "pic.png")
    out_dir = tmp_path / "out"

    assert main(["convert", str(png), "-o", str(out_dir), "--format", "mono-1-3", "--dither", "ordered"]) == 0
    target = out_dir / "pic.scr"
    assert target.stat().st_size == 2048
    assert f"wrote {target}" in capsys.readouterr().out

    assert main(["convert", str(png), "-o", str(out_dir), "--format", "mono-1-3"]) == 1
    assert "already exist" in capsys.readouterr().err

    assert main(["convert", str(png), "-o", str(out_dir), "--format", "mono-1-3", "--force"]) == 0


def test_convert_options_and_suffixes(tmp_path: Path) -> None:
    png = _write_png(tmp_path, "pic.png")
    out_dir = tmp_path / "out"
    args = [
        "convert",
        str(png),
        "-o",
        str(out_dir),
        "--format",
        "53c",
        "--pattern",
        "dd77",
        "--brightness",
        "10",
        "--gamma",
        "1.2",
        "--prefix",
        "zx_",
    ]
    assert main(args) == 0
    assert (out_dir / "zx_pic.53c").stat().st_size == 768


def test_convert_many_inputs_to_one_animation(tmp_path: Path) -> None:
    frames = tmp_path / "frames"
    frames.mkdir()
    _write_png(frames, "a.png")
    _write_png(frames, "b.png")
    out_dir = tmp_path / "out"
    assert main(["convert", str(frames), "-o", str(out_dir), "--format", "sca", "--dither", "none", "--delay", "7"]) == 0
    data = (out_dir / "a.sca").read_bytes()
    assert data[:3] == b"SCA"
    assert data[9] == 2
    assert data[14:16] == bytes([7, 7])


def test_convert_reports_bad_options(tmp_path: Path, capsys) -> None:
    png = _write_png(tmp_path, "pic.png")
    out_dir = tmp_path / "out"
    assert main(["convert", str(png), "-o", str(out_dir), "--dither", "bogus"]) == 1
    assert "Unknown dither" in capsys.readouterr().err
    assert main(["convert", str(png), "-o", str(out_dir), "--palette", "bogus"]) == 1
    assert main(["convert", str(png), "-o", str(out_dir), "--gamma", "0"]) == 1
    assert main(["convert", str(tmp_path / "missing.png"), "-o", str(out_dir)]) == 1


def test_render_scales_output(tmp_path: Path) -> None:
    scr = tmp_path / "screen.scr"
    scr.write_bytes(bytes(6144) + bytes([0x0A]) * 768)
    png = tmp_path / "screen.png"
    assert main(["render", str(scr), "-o", str(png), "--scale", "2"]) == 0
    with Image.open(png) as image:
        assert image.size == (512, 384)
        assert image.convert("RGB").getpixel((0, 0)) == (0, 0, 0xD7)


def test_render_detects_bordered_screens(tmp_path: Path) -> None:
    bsc = tmp_path / "screen.bsc"
    bsc.write_bytes(bytes(6912) + uniform_border(3))
    png = tmp_path / "screen.png"
    assert main(["render", str(bsc), "-o", str(png)]) == 0
    with Image.open(png) as image:
        assert image.size == (384, 304)


def test_info_describes_files(tmp_path: Path, capsys) -> None:
    scr = tmp_path / "screen.scr"
    scr.write_bytes(bytes(6912))
    sca = tmp_path / "anim.sca"
    sca.write_bytes(build_sca([bytes(6912)], [5]))
    assert main(["info", str(scr), str(sca)]) == 0
    out = capsys.readouterr().out
    assert "SCR (6912 bytes)" in out
    assert "1 frames, payload type 0, 100 ms" in out

    unknown = tmp_path / "blob.bin"
    unknown.write_bytes(bytes(5))
    assert main(["info", str(unknown)]) == 1


def test_asm_export(tmp_path: Path) -> None:
    bsc = tmp_path / "demo.bsc"
    bsc.write_bytes(bytes(6912) + uniform_border(1))
    asm = tmp_path / "demo.asm"
    assert main(["asm", str(bsc), "-o", str(asm), "--incbin"]) == 0
    source = asm.read_text()
    assert 'INCBIN "demo.bsc",0,6912' in source
    assert 'SAVESNA "demo.sna",Start' in source


def test_convert_auto_brightness(tmp_path: Path) -> None:
    png = tmp_path / "dark.png"
    Image.new("RGB", (64, 48), (10, 10, 10)).save(png)
    out_dir = tmp_path / "out"
    assert main(["convert", str(png), "-o", str(out_dir), "--auto-brightness", "--dither", "none"]) == 0
    assert (out_dir / "dark.scr").stat().st_size == 6912


def test_sca_dedupe_trim_loop_and_export(tmp_path: Path, capsys) -> None:
    first = bytes([1]) * 6912
    second = bytes([2]) * 6912
    source = tmp_path / "anim.sca"
    source.write_bytes(build_sca([first, first, second, first], [2, 3, 4, 5]))
    target = tmp_path / "edited.sca"
    frames = tmp_path / "frames"

    args = ["sca", str(source), "-o", str(target), "--dedupe", "--trim-loop", "--export", str(frames)]
    assert main(args) == 0
    assert "4 frames, 1 duplicates, loop frame: yes" in capsys.readouterr().out

    edited = read_sca(target.read_bytes())
    assert edited.frame_count == 2
    assert edited.delays == (10, 4)
    assert (frames / "anim_000.scr").read_bytes() == first
    assert (frames / "anim_001.scr").read_bytes() == second

    assert main(args) == 1
    assert main(["sca", str(source)]) == 1


def test_sca_delay_and_attribute_export(tmp_path: Path) -> None:
    source = tmp_path / "anim.sca"
    source.write_bytes(build_sca([bytes([3]) * 6912], [5]))
    target = tmp_path / "slow.sca"
    frames = tmp_path / "frames"
    assert main(["sca", str(source), "-o", str(target), "--delay", "9", "--export", str(frames), "--export-kind", "53c"]) == 0
    assert read_sca(target.read_bytes()).delays == (9,)
    assert (frames / "anim_000.53c").read_bytes() == bytes([3]) * 768
