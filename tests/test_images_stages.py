import pytest
from PIL import Image

from assetkit import PipelineRunner
from assetkit.engine import NullStageRecorder, sequence, single
from asset_pipeline.framework.config import ProjectPaths
from asset_pipeline.framework.runtime import BuildInputs
from asset_pipeline.stages import fonts, images, webp


@pytest.fixture
def project(tmp_path):
    app = tmp_path / "app"
    (app / "images" / "icons").mkdir(parents=True)
    Image.new("RGBA", (8, 8), (255, 0, 0, 128)).save(app / "images" / "icons" / "dot.png")
    Image.new("RGB", (16, 16), (0, 128, 255)).save(app / "images" / "photo.jpg", quality=90)
    (app / "images" / "logo.svg").write_text("<svg/>", encoding="utf-8")
    (app / "fonts").mkdir()
    (app / "fonts" / "body.woff2").write_bytes(b"wOF2")
    return BuildInputs(paths=ProjectPaths(app_dir=str(app), dist_dir=str(tmp_path / "web")))


def _runner(*pipelines):
    return PipelineRunner(list(pipelines), recorder=NullStageRecorder())


def test_images_optimizes_and_copies_keeping_tree(project, tmp_path):
    stage = images.STAGE.build(project)

    result = _runner(single(stage)).run_sync("images")

    out = tmp_path / "web" / "images"
    assert result.ok
    assert (out / "icons" / "dot.png").exists()
    assert (out / "logo.svg").read_text(encoding="utf-8") == "<svg/>"
    with Image.open(out / "photo.jpg") as im:
        assert im.format == "JPEG"
        assert im.info.get("progressive") or im.info.get("progression")


def test_export_webp_writes_webp_next_to_images_and_is_fresh_on_rerun(project, tmp_path):
    stage = webp.STAGE.build(project, options={"quality": 60})
    runner = _runner(single(stage))

    first = runner.run_sync("exportWebp")

    out = tmp_path / "web" / "images"
    assert first.ok
    assert sorted(p.name for p in out.rglob("*.webp")) == ["dot.webp", "photo.webp"]
    with Image.open(out / "icons" / "dot.webp") as im:
        assert im.format == "WEBP"

    second = runner.run_sync("exportWebp")
    assert second.stage("exportWebp").skipped_reason == "fresh"


def test_images_and_webp_share_destination_without_contention(project, tmp_path):
    pipeline = sequence(
        "content",
        [images.STAGE.build(project), webp.STAGE.build(project), fonts.STAGE.build(project)],
    )

    result = _runner(pipeline).run_sync("content")

    assert result.ok
    assert (tmp_path / "web" / "images" / "photo.jpg").exists()
    assert (tmp_path / "web" / "images" / "photo.webp").exists()
    assert (tmp_path / "web" / "fonts" / "body.woff2").read_bytes() == b"wOF2"


def test_corrupt_image_fails_alone(project, tmp_path):
    broken = tmp_path / "app" / "images" / "broken.png"
    broken.write_bytes(b"not a png")

    result = _runner(single(images.STAGE.build(project))).run_sync("images")

    failures = result.stage("images").failures
    assert [f.source_file for f in failures] == [str(broken)]
    assert failures[0].kind == "filesystem"
    assert (tmp_path / "web" / "images" / "photo.jpg").exists()


def test_webp_quality_is_validated_at_build_time(project):
    with pytest.raises(ValueError, match=r"stages.exportWebp.quality must be <= 100"):
        webp.STAGE.build(project, options={"quality": 150})


def test_png_saved_with_jpg_name_is_reencoded_and_later_files_still_run(project, tmp_path):
    Image.new("RGB", (4, 4), (10, 200, 10)).save(tmp_path / "app" / "images" / "aaa.jpg", format="PNG")
    Image.new("RGB", (4, 4), (200, 10, 10)).save(tmp_path / "app" / "images" / "zzz.png")

    result = _runner(single(images.STAGE.build(project))).run_sync("images")

    out = tmp_path / "web" / "images"
    assert result.ok
    with Image.open(out / "aaa.jpg") as im:
        assert im.format == "JPEG"
    assert (out / "zzz.png").exists()


def test_non_oserror_from_pillow_is_pinned_to_its_file(project, tmp_path, monkeypatch):
    bomb = tmp_path / "app" / "images" / "aaa.png"
    Image.new("RGB", (4, 4)).save(bomb)
    Image.new("RGB", (4, 4)).save(tmp_path / "app" / "images" / "zzz.png")
    real_optimize = images.optimize_image

    def optimize(src, dst, *, progressive=True):
        if src == str(bomb):
            raise Image.DecompressionBombError("Image size exceeds limit")
        real_optimize(src, dst, progressive=progressive)

    monkeypatch.setattr(images, "optimize_image", optimize)

    result = _runner(single(images.STAGE.build(project))).run_sync("images")

    failures = result.stage("images").failures
    assert [(f.kind, f.source_file) for f in failures] == [("transform", str(bomb))]
    assert "DecompressionBombError" in failures[0].message
    assert (tmp_path / "web" / "images" / "zzz.png").exists()
    assert (tmp_path / "web" / "images" / "photo.jpg").exists()
