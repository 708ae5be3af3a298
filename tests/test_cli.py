"""Tests for gzcontainer/cli.py: end-to-end command runs on temp files."""

import gzip
import json

import pytest

from gzcontainer.cli import build_parser, describe_header, main, parse_extra_args
from gzcontainer.extra import parse_extra_fields
from gzcontainer.gzip_format import gzip_compress, gzip_decompress


@pytest.fixture
def sample_file(tmp_path, log_data):
    path = tmp_path / "app.log"
    path.write_bytes(log_data)
    return path


# ââ Argument parsing âââââââââââââââââââââââââââââââââââââââââââââââ


class TestBuildParser:
    def test_command_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_compress_args(self):
        args = build_parser().parse_args(
            ["compress", "in.txt", "--level", "3", "--name", "n", "--extra", "AB=1", "--extra", "CD=2"]
        )
        assert args.command == "compress"
        assert args.level == 3
        assert args.extra == ["AB=1", "CD=2"]
        assert args.header_crc is None

    def test_inspect_output_choices(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["inspect", "x.gz", "--output", "xml"])


class TestParseExtraArgs:
    def test_none(self):
        assert parse_extra_args([]) is None

    def test_builds_subfields(self):
        blob = parse_extra_args(["AP=hello", "ZZ="])
        fields = parse_extra_fields(blob, 0, len(blob))
        assert [f.subfield_id for f in fields] == [(0x41, 0x50), (0x5A, 0x5A)]
        assert blob[fields[0].data_range.start:fields[0].data_range.stop] == b"hello"

    @pytest.mark.parametrize("value", ["ABC=1", "A=1", "AB", "€B=v"])
    def test_malformed(self, value):
        with pytest.raises(ValueError, match="ID=VALUE"):
            parse_extra_args([value])


# ââ compress / decompress ââââââââââââââââââââââââââââââââââââââââââ


class TestCompressCommand:
    def test_default_output_path(self, sample_file, log_data):
        assert main(["compress", str(sample_file)]) == 0
        out = sample_file.with_name("app.log.gz")
        assert gzip.decompress(out.read_bytes()) == log_data

    def test_metadata_written(self, sample_file, tmp_path, log_data):
        out = tmp_path / "custom.gz"
        code = main([
            "compress", str(sample_file), "-o", str(out),
            "--name", "app.log", "--comment", "nightly", "--extra", "AP=1",
            "--header-crc", "--mtime", "0", "--level", "9",
        ])
        assert code == 0
        result = gzip_decompress(out.read_bytes())
        assert result.data == log_data
        assert bytes(result.view(result.filename_range)) == b"app.log"
        assert bytes(result.view(result.comment_range)) == b"nightly"
        assert len(result.extra_fields) == 1

    def test_null_in_name_fails(self, sample_file, capsys):
        assert main(["compress", str(sample_file), "--name", "a\0b"]) == 1
        assert "GZIP_NULL_IN_STRING" in capsys.readouterr().err

    def test_bad_extra_arg_fails(self, sample_file, capsys):
        assert main(["compress", str(sample_file), "--extra", "nope"]) == 1
        assert "ID=VALUE" in capsys.readouterr().err

    def test_non_ascii_extra_id_fails(self, sample_file, capsys):
        assert main(["compress", str(sample_file), "--extra", "€B=v"]) == 1
        assert "ID=VALUE" in capsys.readouterr().err

    def test_missing_input(self, tmp_path):
        assert main(["compress", str(tmp_path / "missing")]) == 2

    def test_invalid_level(self, sample_file, capsys):
        assert main(["compress", str(sample_file), "--level", "11"]) == 2
        assert "compression_level" in capsys.readouterr().err

    def test_mtime_from_env(self, sample_file, monkeypatch):
        monkeypatch.setenv("GZC_MTIME", "77")
        assert main(["compress", str(sample_file)]) == 0
        data = sample_file.with_name("app.log.gz").read_bytes()
        assert int.from_bytes(data[4:8], "little") == 77


class TestDecompressCommand:
    def test_round_trip(self, sample_file, log_data):
        main(["compress", str(sample_file)])
        sample_file.unlink()
        assert main(["decompress", str(sample_file.with_name("app.log.gz"))]) == 0
        assert sample_file.read_bytes() == log_data

    def test_non_gz_name(self, tmp_path):
        path = tmp_path / "blob.bin"
        path.write_bytes(gzip_compress(b"payload"))
        assert main(["decompress", str(path)]) == 0
        assert (tmp_path / "blob.bin.out").read_bytes() == b"payload"

    def test_max_len(self, tmp_path, capsys):
        path = tmp_path / "big.gz"
        path.write_bytes(gzip_compress(b"x" * 1000))
        assert main(["decompress", str(path), "--max-len", "999"]) == 1
        assert "GZIP_OUTPUT_TOO_LONG" in capsys.readouterr().err

    def test_corrupt_file(self, tmp_path, capsys):
        path = tmp_path / "bad.gz"
        data = bytearray(gzip_compress(b"hello world"))
        data[-5] ^= 0x10
        path.write_bytes(bytes(data))
        assert main(["decompress", str(path)]) == 1
        assert "GZIP_BAD_CRC32" in capsys.readouterr().err

    def test_not_gzip(self, tmp_path, capsys):
        path = tmp_path / "plain.gz"
        path.write_bytes(b"just some plain text here")
        assert main(["decompress", str(path)]) == 1
        assert "GZIP_BAD_MAGIC_BYTES" in capsys.readouterr().err


# ââ inspect ââââââââââââââââââââââââââââââââââââââââââââââââââââââââ


class TestInspectCommand:
    def test_describe_header(self):
        data = gzip_compress(b"hello", filename="a.txt", comment="hi", extra=parse_extra_args(["AP=xy"]), mtime=9)
        info = describe_header(data)
        assert info["flags"] == "FEXTRA|FNAME|FCOMMENT"
        assert info["mtime"] == 9
        assert info["os"] == 255
        assert info["filename"] == "a.txt"
        assert info["comment"] == "hi"
        assert info["extra"] == [{"id": "AP", "offset": 16, "length": 2}]
        assert info["isize"] == 5
        assert info["header_len"] + info["compressed_len"] + 8 == len(data)

    def test_describe_header_without_metadata(self):
        info = describe_header(gzip_compress(b"hello"))
        assert info["flags"] == "0"
        assert info["filename"] is None
        assert info["extra"] is None

    def test_json_output(self, tmp_path, capsys):
        path = tmp_path / "a.gz"
        path.write_bytes(gzip_compress(b"hello", filename="a.txt", mtime=0))
        assert main(["inspect", str(path), "--output", "json"]) == 0
        info = json.loads(capsys.readouterr().out)
        assert info["filename"] == "a.txt"
        assert info["flags"] == "FNAME"

    def test_text_output(self, tmp_path, capsys):
        path = tmp_path / "a.gz"
        path.write_bytes(gzip_compress(b"hello", comment="note"))
        assert main(["inspect", str(path)]) == 0
        out = capsys.readouterr().out
        assert "comment" in out
        assert "note" in out
