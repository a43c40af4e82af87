from __future__ import annotations

import json
import zlib
from pathlib import Path

import pytest

from rompatch.cli import EXIT_ERROR, EXIT_INTEGRITY, EXIT_OK, main, parse_arguments
from rompatch.patching import SourceRead, TargetRead

ROM = b"ABCDEFGH"
PATCHED = b"ABzzEFGH"


@pytest.fixture
def files(tmp_path: Path, build_ips, build_bps):
    rom = tmp_path / "game.gb"
    rom.write_bytes(ROM)
    ips = tmp_path / "fix.ips"
    ips.write_bytes(build_ips((2, b"zz")))
    bps = tmp_path / "fix2.bps"
    bps.write_bytes(
        build_bps(ROM, PATCHED, [SourceRead(2), TargetRead(b"zz"), SourceRead(4)], metadata="fix")
    )
    quiet = tmp_path / "quiet.yaml"
    quiet.write_text("logging:\n  level: WARNING\n", encoding="utf-8")
    return {"rom": rom, "ips": ips, "bps": bps, "quiet": quiet, "dir": tmp_path}


def test_apply_ips(files, capsys):
    code = main(["-r", str(files["rom"]), "-p", str(files["ips"])])

    assert code == EXIT_OK
    assert (files["dir"] / "fix.gb").read_bytes() == PATCHED
    out = capsys.readouterr().out
    assert "Patched ROM written to" in out
    assert "CRC32: %08X" % zlib.crc32(PATCHED) in out


def test_apply_bps_with_explicit_output(files):
    out = files["dir"] / "custom.gb"
    code = main(["-r", str(files["rom"]), "-p", str(files["bps"]), "-o", str(out)])
    assert code == EXIT_OK
    assert out.read_bytes() == PATCHED


def test_wrong_rom_exits_with_integrity_code(files, capsys):
    files["rom"].write_bytes(b"hgfedcba")
    code = main(["-r", str(files["rom"]), "-p", str(files["bps"])])

    assert code == EXIT_INTEGRITY
    err = capsys.readouterr().err
    assert "SOURCE_CHECKSUM_MISMATCH" in err
    assert not (files["dir"] / "fix2.gb").exists()


def test_corrupt_patch_is_a_plain_error(files, capsys):
    data = bytearray(files["bps"].read_bytes())
    data[-1] ^= 0xFF
    files["bps"].write_bytes(bytes(data))

    code = main(["-r", str(files["rom"]), "-p", str(files["bps"]), "--config", str(files["quiet"])])

    assert code == EXIT_ERROR
    err = capsys.readouterr().err
    assert "PATCH_CHECKSUM_MISMATCH" in err
    assert "does not match" not in err


def test_exit_codes_are_distinct():
    # argparse exits with 2 on usage errors
    assert len({EXIT_OK, EXIT_ERROR, EXIT_INTEGRITY, 2}) == 4


def test_no_verify_skips_checksums(files):
    files["rom"].write_bytes(b"hgfedcba")
    code = main(["-r", str(files["rom"]), "-p", str(files["bps"]), "--no-verify"])
    assert code == EXIT_OK
    assert (files["dir"] / "fix2.gb").read_bytes() == b"hgzzdcba"


def test_existing_output_needs_force(files):
    out = files["dir"] / "fix.gb"
    out.write_bytes(b"old")
    argv = ["-r", str(files["rom"]), "-p", str(files["ips"])]

    assert main(argv) == EXIT_ERROR
    assert out.read_bytes() == b"old"
    assert main(argv + ["--force"]) == EXIT_OK
    assert out.read_bytes() == PATCHED


def test_info_prints_patch_summary(files, capsys):
    code = main(["-p", str(files["bps"]), "--info", "--config", str(files["quiet"])])

    assert code == EXIT_OK
    summary = json.loads(capsys.readouterr().out)
    assert summary["format"] == "BPS"
    assert summary["name"] == "fix2.bps"
    assert summary["metadata"] == "fix"
    assert summary["source_size"] == len(ROM)


def test_info_logs_go_to_stderr(files, capsys):
    code = main(["-p", str(files["bps"]), "--info"])

    assert code == EXIT_OK
    captured = capsys.readouterr()
    summary = json.loads(captured.out)
    assert summary["format"] == "BPS"
    assert "Read" in captured.err


def test_info_on_broken_patch(files, capsys):
    broken = files["dir"] / "broken.ips"
    broken.write_bytes(b"PATCH")
    code = main(["-p", str(broken), "--info", "--config", str(files["quiet"])])
    assert code == EXIT_ERROR
    assert "BAD_FOOTER" in capsys.readouterr().err


def test_missing_config_file(files, capsys):
    code = main(["-r", str(files["rom"]), "-p", str(files["ips"]), "--config",
                 str(files["dir"] / "nope.json")])
    assert code == EXIT_ERROR
    assert "Configuration error" in capsys.readouterr().err


def test_version(capsys):
    assert main(["--version"]) == EXIT_OK
    assert capsys.readouterr().out.startswith("ROM Patch v")


@pytest.mark.parametrize("argv", [[], ["-r", "game.sfc"], ["-p", "hack.ips"]])
def test_required_arguments(argv):
    with pytest.raises(SystemExit) as excinfo:
        parse_arguments(argv)
    assert excinfo.value.code == 2


def test_info_does_not_need_rom():
    args = parse_arguments(["-p", "hack.ips", "--info"])
    assert args.info is True
    assert args.rom is None
