"""
构建器与构建管道单元测试

测试构建管道、构建步骤、原子写出与失败清理。
"""

import io
import tarfile

import pytest
import zstandard as zstd

from pkgsmith.build.build_context import BuildContext, BuildError
from pkgsmith.build.build_pipeline import BuildPipeline
from pkgsmith.build.builder import Builder
from pkgsmith.build.registry import create_default_registry
from pkgsmith.build.steps.build_step import BuildStep
from pkgsmith.config.schema import PackageConfig


class MockBuildStep(BuildStep):
    """模拟构建步骤"""

    def __init__(self, name="mock", progress_range=(0, 10)):
        super().__init__(name, "模拟步骤")
        self._progress_range = progress_range
        self.execute_called = False

    def get_progress_range(self):
        return self._progress_range

    def execute(self, context):
        self.execute_called = True
        context.build_stats['mock_processed'] = True


@pytest.fixture
def config_data(source_tree):
    return {
        "name": "foo",
        "arch": "amd64",
        "version": "1.0.0",
        "maintainer": "Foo Bar <foo@example.com>",
        "files": {str(source_tree / "bin" / "foo"): "/usr/bin/foo"},
        "config_files": {str(source_tree / "etc" / "foo.conf"): "/etc/foo.conf"},
    }


@pytest.fixture
def config(config_data):
    return PackageConfig.from_dict(config_data)


class TestBuildContext:
    """BuildContext 测试"""

    def test_report(self, config):
        calls = []
        context = BuildContext(
            config=config,
            format_name="rpm",
            registry=create_default_registry(),
            progress_callback=lambda *args: calls.append(args),
        )
        context.report("阶段", 50, "消息")
        assert calls == [("阶段", 50, 100, "消息")]

    def test_error_type(self):
        assert BuildError("x").error_type == "BuildError"
        assert BuildError("x", KeyError("k")).error_type == "KeyError"


class TestBuildPipeline:
    """BuildPipeline 测试"""

    def test_default_steps(self):
        pipeline = BuildPipeline(create_default_registry())
        assert [step.name for step in pipeline.get_steps()] == ["resolve", "package"]
        assert pipeline.validate_pipeline() == []

    def test_add_and_remove_step(self):
        pipeline = BuildPipeline(create_default_registry())
        pipeline.add_step(MockBuildStep(), position=0)
        assert pipeline.get_steps()[0].name == "mock"
        pipeline.remove_step("mock")
        assert [step.name for step in pipeline.get_steps()] == ["resolve", "package"]

    def test_validate_detects_gaps(self):
        pipeline = BuildPipeline(create_default_registry())
        pipeline.remove_step("package")
        errors = pipeline.validate_pipeline()
        assert any("100%" in e for e in errors)

        pipeline.remove_step("resolve")
        assert pipeline.validate_pipeline() == ["构建管道中没有步骤"]

    def test_extra_step_runs(self, config, tmp_path):
        pipeline = BuildPipeline(create_default_registry())
        step = MockBuildStep(progress_range=(100, 100))
        pipeline.add_step(step)
        context = pipeline.execute(config, "rpm", tmp_path)
        assert step.execute_called
        assert context.build_stats['mock_processed'] is True

    def test_failure_wraps_cause(self, config, tmp_path):
        pipeline = BuildPipeline(create_default_registry())
        with pytest.raises(BuildError) as exc_info:
            pipeline.execute(config, "nope", tmp_path)
        assert exc_info.value.error_type == "NoPackagerError"


class TestBuilder:
    """Builder 测试"""

    def test_build_into_directory(self, config, tmp_path):
        out_dir = tmp_path / "out"
        out_dir.mkdir()
        progress = []

        result = Builder().build(config, "rpm", out_dir, lambda *args: progress.append(args[1]))

        assert result.success, result.error
        assert result.format_name == "rpm"
        assert result.output_path == out_dir / "foo-1.0.0-1.x86_64.rpm"
        assert result.output_path.is_file()
        assert result.output_size == result.output_path.stat().st_size
        assert result.build_time >= 0
        assert progress[0] == 0
        assert progress[-1] == 100
        assert list(out_dir.iterdir()) == [result.output_path]

    def test_build_to_explicit_file(self, config, tmp_path):
        target = tmp_path / "custom.deb"
        result = Builder().build(config, "deb", target)
        assert result.success, result.error
        assert result.output_path == target
        assert target.read_bytes()[:8] == b"!<arch>\n"

    def test_default_target_is_cwd(self, config, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        result = Builder().build(config, "archlinux")
        assert result.success, result.error
        assert result.output_path == tmp_path / "foo-1.0.0-1-x86_64.pkg.tar.zst"

    def test_alias_override_key(self, config_data, tmp_path):
        config = PackageConfig.from_dict({**config_data, "overrides": {"arch": {"depends": ["glibc"]}}})
        result = Builder().build(config, "archlinux", tmp_path)
        assert result.success, result.error

        data = zstd.ZstdDecompressor().decompressobj().decompress(result.output_path.read_bytes())
        with tarfile.open(fileobj=io.BytesIO(data)) as tar:
            pkginfo = tar.extractfile(".PKGINFO").read().decode("utf-8")
        assert "depend = glibc" in pkginfo

    def test_unknown_format(self, config, tmp_path):
        out_dir = tmp_path / "out"
        out_dir.mkdir()
        result = Builder().build(config, "msi", out_dir)
        assert not result.success
        assert result.error_type == "NoPackagerError"
        assert list(out_dir.iterdir()) == []

    def test_missing_source_leaves_nothing(self, config, tmp_path):
        config = config.model_copy(update={"files": {str(tmp_path / "missing" / "*.bin"): "/usr/lib/"}})
        out_dir = tmp_path / "out"
        out_dir.mkdir()

        result = Builder().build(config, "rpm", out_dir)

        assert not result.success
        assert result.error_type == "GlobNoMatchError"
        assert isinstance(result.exception, Exception)
        assert list(out_dir.iterdir()) == []

    def test_validation_error_before_write(self, config, tmp_path):
        config = config.model_copy(update={"name": "-bad"})
        out_dir = tmp_path / "out"
        out_dir.mkdir()

        result = Builder().build(config, "deb", out_dir)

        assert not result.success
        assert result.error_type == "InvalidPackageNameError"
        assert list(out_dir.iterdir()) == []

    def test_validate_build_pipeline(self):
        assert Builder().validate_build_pipeline() == []
