import pytest

from relverify.pipeline.context import Context


def make_context(tmp_path):
    return Context(working_dir=tmp_path, inputs={"INPUT_VERSION": "1.16.0"})


def test_put_writes_only_own_slot(tmp_path):
    ctx = make_context(tmp_path)

    with ctx.bind("download"):
        ctx.put("DOWNLOADED_FILES", ["a.tgz"])
    with ctx.bind("checkout"):
        ctx.put("CHECKOUT_TREE", "/tmp/checkout")

    assert ctx.outputs == {
        "download": {"DOWNLOADED_FILES": ["a.tgz"]},
        "checkout": {"CHECKOUT_TREE": "/tmp/checkout"},
    }
    assert ctx.output("download", "DOWNLOADED_FILES") == ["a.tgz"]


def test_put_is_append_only(tmp_path):
    ctx = make_context(tmp_path)

    with ctx.bind("build"):
        ctx.put("BUILD_TARGET", "/tmp/a")
        with pytest.raises(KeyError):
            ctx.put("BUILD_TARGET", "/tmp/b")
        with pytest.raises(KeyError):
            ctx.put("MAVEN_VERSION", None)

    assert ctx.output("build", "BUILD_TARGET") == "/tmp/a"


def test_put_outside_step(tmp_path):
    ctx = make_context(tmp_path)

    with pytest.raises(RuntimeError):
        ctx.put("BUILD_TARGET", "/tmp/a")


def test_slot_cannot_be_bound_twice(tmp_path):
    ctx = make_context(tmp_path)
    with ctx.bind("build"):
        pass

    with pytest.raises(KeyError):
        with ctx.bind("build"):
            pass


def test_reads_search_inputs_then_slots(tmp_path):
    ctx = make_context(tmp_path)
    with ctx.bind("extract"):
        ctx.put("EXTRACTED_SOURCE", str(tmp_path / "src"))

    assert ctx.require("INPUT_VERSION") == "1.16.0"
    assert ctx.path("EXTRACTED_SOURCE") == tmp_path / "src"
    assert ctx.get("MISSING", "fallback") == "fallback"
    assert not ctx.has("MISSING")
    with pytest.raises(KeyError):
        ctx.require("MISSING")


def test_binding_is_restored(tmp_path):
    ctx = make_context(tmp_path)
    assert ctx.current_step is None

    with ctx.bind("download"):
        assert ctx.current_step == "download"

    assert ctx.current_step is None
