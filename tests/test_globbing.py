import os

import pytest

from assetkit import PathSet
from assetkit.globbing import compile_glob, discover, glob_base, has_wildcard, match


def test_glob_base_stops_at_first_wildcard():
    assert glob_base("app/images/**/*") == "app/images"
    assert glob_base("app/*.html") == "app"
    assert glob_base("app/scss/main.scss") == "app/scss"
    assert glob_base("*.html") == "."


def test_has_wildcard():
    assert has_wildcard("a/**/*.js")
    assert has_wildcard("a/{x,y}.png")
    assert not has_wildcard("a/b/c.js")


@pytest.mark.parametrize(
    ("pattern", "path", "expected"),
    [
        ("js/**/*.js", "js/main.js", True),
        ("js/**/*.js", "js/lib/deep/x.js", True),
        ("js/**/*.js", "js/main.ts", False),
        ("*.html", "index.html", True),
        ("*.html", "sub/index.html", False),
        ("images/**/*.{png,jpg,jpeg}", "images/a/b.jpeg", True),
        ("images/**/*.{png,jpg,jpeg}", "images/a/b.gif", False),
        ("**/node_modules/**", "node_modules/x/index.js", True),
        ("**/node_modules/**", "vendor/node_modules/x.js", True),
        ("fonts/?.woff", "fonts/a.woff", True),
        ("fonts/[ab].woff", "fonts/c.woff", False),
    ],
)
def test_compile_glob(pattern, path, expected):
    assert (compile_glob(pattern).match(path) is not None) is expected


def test_match_compares_absolute_forms(tmp_path, monkeypatch):
    root = tmp_path.resolve()
    monkeypatch.chdir(root)
    assert match("app/scss/_vars.scss", str(root / "app" / "scss" / "**" / "*"))
    assert not match("app/js/main.js", str(root / "app" / "scss" / "**" / "*"))


def test_discover_is_sorted_and_honors_ignore(tmp_path):
    js = tmp_path / "js"
    (js / "node_modules" / "pkg").mkdir(parents=True)
    (js / "lib").mkdir()
    (js / "main.js").write_text("", encoding="utf-8")
    (js / "lib" / "b.js").write_text("", encoding="utf-8")
    (js / "lib" / "a.js").write_text("", encoding="utf-8")
    (js / "node_modules" / "pkg" / "index.js").write_text("", encoding="utf-8")
    (js / "readme.md").write_text("", encoding="utf-8")

    found = discover(str(js / "**" / "*.js"), ignore=("**/node_modules/**",))

    assert isinstance(found, PathSet)
    names = [os.path.relpath(p, js).replace(os.sep, "/") for p in found]
    assert names == ["lib/a.js", "lib/b.js", "main.js"]


def test_discover_plain_file_and_missing_base(tmp_path):
    entry = tmp_path / "main.scss"
    entry.write_text("", encoding="utf-8")

    assert len(discover(str(entry))) == 1
    assert discover(str(tmp_path / "missing.scss")) == PathSet()
    assert discover(str(tmp_path / "nope" / "**" / "*")) == PathSet()


def test_pathset_dedupes_and_rejects_plain_string():
    paths = PathSet(["b", "a", "b"])
    assert list(paths) == ["b", "a"]
    assert list(paths + ["a", "c"]) == ["b", "a", "c"]

    with pytest.raises(TypeError):
        PathSet("abc")
    with pytest.raises(ValueError):
        PathSet([""])
