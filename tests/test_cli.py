"""
Tests for the offline command-line interface.
"""

import argparse

import pytest

from teach_cam import cli
from teach_cam.mapping import Rect


@pytest.fixture
def catalog(tmp_path):
    return str(tmp_path / "catalog.db")


@pytest.fixture
def scene_file(write_image, scene):
    return str(write_image("scene.png", scene))


def run(catalog, *args):
    return cli.main(["--db", catalog, *args])


class TestParseBox:
    def test_valid(self):
        assert cli.parse_box("10, 20,30,40") == Rect(10, 20, 30, 40)

    @pytest.mark.parametrize("text", ["1,2,3", "a,b,c,d", ""])
    def test_invalid(self, text):
        with pytest.raises(argparse.ArgumentTypeError):
            cli.parse_box(text)


class TestCommands:
    def test_list_empty(self, catalog, capsys):
        assert run(catalog, "list-models") == 0
        assert "No models found" in capsys.readouterr().out

    def test_import_then_detect(self, catalog, scene_file, capsys):
        assert run(catalog, "import", "--model", "kitchen", "--label", "cup",
                   "--box", "10,10,50,50", scene_file) == 0
        assert run(catalog, "import", "--model", "kitchen", "--label", "mug",
                   "--box", "100,100,40,40", scene_file) == 0
        out = capsys.readouterr().out
        assert "Created model" in out
        assert "Added 1 samples" in out

        assert run(catalog, "detect", "--model", "kitchen", scene_file) == 0
        out = capsys.readouterr().out
        assert "2 templates" in out
        assert "2 detections" in out
        assert "x=10 y=10 w=50 h=50" in out
        assert "x=100 y=100 w=40 h=40" in out

    def test_list_and_show(self, catalog, scene_file, capsys):
        run(catalog, "import", "--model", "kitchen", "--label", "cup", "--box", "10,10,50,50", scene_file)
        capsys.readouterr()

        assert run(catalog, "list-models") == 0
        assert "kitchen" in capsys.readouterr().out

        assert run(catalog, "show", "--model", "kitchen") == 0
        out = capsys.readouterr().out
        assert "cup" in out
        assert "[10, 10, 50, 50]" in out

    def test_delete(self, catalog, scene_file, capsys):
        run(catalog, "import", "--model", "kitchen", "--label", "cup", "--box", "10,10,50,50", scene_file)
        assert run(catalog, "delete", "--model", "kitchen") == 0
        capsys.readouterr()
        run(catalog, "list-models")
        assert "No models found" in capsys.readouterr().out

    def test_missing_model(self, catalog, capsys):
        assert run(catalog, "show", "--model", "ghost") == 1
        assert "not found" in capsys.readouterr().err

    def test_detect_with_untrainable_model(self, catalog, scene_file, capsys):
        """A model whose samples are all too small fails with exit code 1."""
        run(catalog, "import", "--model", "tiny", "--label", "dot", "--box", "0,0,4,4", scene_file)
        assert run(catalog, "detect", "--model", "tiny", scene_file) == 1
        assert "training model 'tiny' failed" in capsys.readouterr().err

    def test_import_unreadable_image(self, catalog, tmp_path, capsys):
        bad = tmp_path / "bad.png"
        bad.write_bytes(b"nope")
        assert run(catalog, "import", "--model", "m", "--label", "x", "--box", "0,0,10,10", str(bad)) == 1
        assert "no readable images" in capsys.readouterr().err

    def test_detect_unreadable_image(self, catalog, scene_file, tmp_path, capsys):
        run(catalog, "import", "--model", "kitchen", "--label", "cup", "--box", "10,10,50,50", scene_file)
        assert run(catalog, "detect", "--model", "kitchen", str(tmp_path / "missing.png")) == 1
