import json

import pytest

from bead_pattern.core_types import InputShapeError
from bead_pattern.palette_data import build_palette, load_palette_file


def test_build_palette_keeps_order_and_names():
    pal = build_palette([("A1", "#FF0000", "Red"), ("A2", "00ff00"), ("A3", "#00f")])
    assert [c.id for c in pal] == ["A1", "A2", "A3"]
    assert pal[0].rgb == (255, 0, 0)
    assert pal[0].name == "Red"
    assert pal[1].name == ""
    assert pal[2].rgb == (0, 0, 255)
    assert pal[2].hex == "#0000ff"


@pytest.mark.parametrize(
    "rows",
    [[], [("A1",)], [("A1", "#zzzzzz")], [("A1", "#000000"), ("A1", "#ffffff")]],
)
def test_build_palette_rejects_bad_rows(rows):
    with pytest.raises(InputShapeError):
        build_palette(rows)


def test_load_json_list(tmp_path):
    path = tmp_path / "beads.json"
    path.write_text(
        json.dumps(
            [
                {"id": "H1", "hex": "#ffffff", "name": "White"},
                {"id": "H2", "rgb": [10, 20, 30]},
            ]
        ),
        encoding="utf-8",
    )
    pal = load_palette_file(path)
    assert [(c.id, c.rgb, c.name) for c in pal] == [
        ("H1", (255, 255, 255), "White"),
        ("H2", (10, 20, 30), ""),
    ]


def test_load_json_object(tmp_path):
    path = tmp_path / "beads.json"
    path.write_text(json.dumps({"colours": [{"id": "x", "hex": "#123456"}]}), encoding="utf-8")
    assert load_palette_file(path)[0].rgb == (0x12, 0x34, 0x56)


def test_load_json_bad_entry(tmp_path):
    path = tmp_path / "beads.json"
    path.write_text(json.dumps([{"id": "x"}]), encoding="utf-8")
    with pytest.raises(InputShapeError):
        load_palette_file(path)


def test_load_csv_with_header(tmp_path):
    path = tmp_path / "beads.csv"
    path.write_text("id,hex,name\nP01,#000000,Black\n\nP02,#ffffff,White\n", encoding="utf-8")
    pal = load_palette_file(path)
    assert [c.id for c in pal] == ["P01", "P02"]
    assert pal[1].name == "White"


def test_unsupported_extension(tmp_path):
    path = tmp_path / "beads.txt"
    path.write_text("", encoding="utf-8")
    with pytest.raises(InputShapeError):
        load_palette_file(path)
