from __future__ import annotations

import json
from pathlib import Path

import yaml
from pydantic import BaseModel, Field

from relverify.core.models import Policy


class PipelineConfig(BaseModel):
    """Configuration for scheduling and evidence capture."""
    policy: Policy = Policy.FAIL_FAST
    max_workers: int = Field(default=1, ge=1)
    step_timeout_seconds: float | None = 3600.0
    timeouts: dict[str, float] = {}   # per step id
    max_output_bytes: int = Field(default=64 * 1024, gt=0)

    def timeout_for(self, step_id: str) -> float | None:
        return self.timeouts.get(step_id, self.step_timeout_seconds)


class RepositoryConfig(BaseModel):
    """The project whose release candidate is verified."""
    name: str = "flink"
    url: str = "https://github.com/apache/flink.git"
    tag_prefix: str = "release-"


class MavenConfig(BaseModel):
    """Build tool settings."""
    executable: str = "mvn"
    required_version: str | None = "3.2.5"
    modules: list[str] = ["flink-dist"]
    params: list[str] = ["-DskipTests"]
    build_target: str = "build-target"


class SmokeTestConfig(BaseModel):
    """Session-cluster example runs and the log patterns that fail them."""
    examples: dict[str, str] = {
        "streaming": "examples/streaming/WordCount.jar",
        "batch": "examples/batch/WordCount.jar",
    }
    log_patterns: list[str] = [r"\bERROR\b", r"Exception"]


class VerifyConfig(BaseModel):
    """Complete release verification configuration."""
    metadata: dict = {}
    pipeline: PipelineConfig
    repository: RepositoryConfig
    maven: MavenConfig
    smoke_test: SmokeTestConfig

    @classmethod
    def from_file(cls, path: str) -> VerifyConfig:
        """Load configuration from a YAML or JSON file."""
        file_path = Path(path)

        with open(file_path, 'r') as f:
            if file_path.suffix.lower() in ['.yml', '.yaml']:
                data = yaml.safe_load(f) or {}
            else:
                data = json.load(f)

        # Missing sections fall back to defaults
        return cls(
            metadata=data.get('metadata', {}),
            pipeline=PipelineConfig(**data.get('pipeline', {})),
            repository=RepositoryConfig(**data.get('repository', {})),
            maven=MavenConfig(**data.get('maven', {})),
            smoke_test=SmokeTestConfig(**data.get('smoke_test', {})),
        )

    @classmethod
    def default(cls) -> VerifyConfig:
        return cls(
            metadata={'description': 'Default release verification settings'},
            pipeline=PipelineConfig(),
            repository=RepositoryConfig(),
            maven=MavenConfig(),
            smoke_test=SmokeTestConfig(),
        )
