"""Pytest configuration and fixtures for ChangeLens tests."""

import shutil
import tempfile
from pathlib import Path
from typing import Generator

import pytest

from changelens.parser import SourceParser


@pytest.fixture(autouse=True)
def _isolated_config(tmp_path_factory, monkeypatch):
    """Point the TOML config at a throwaway file so tests never read ~/.changelens."""
    config_file = tmp_path_factory.mktemp("changelens_home") / "config.toml"
    monkeypatch.setattr("changelens.config.CONFIG_FILE", config_file)
    return config_file


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    tmp = Path(tempfile.mkdtemp())
    yield tmp
    shutil.rmtree(tmp, ignore_errors=True)


@pytest.fixture
def sample_ts_project_path() -> Path:
    """Get path to the sample TypeScript project."""
    return Path(__file__).parent / "fixtures" / "sample_ts_project"


@pytest.fixture
def ts_project(temp_dir: Path, sample_ts_project_path: Path) -> Path:
    """Writable copy of the sample TypeScript project."""
    project = temp_dir / "project"
    shutil.copytree(sample_ts_project_path, project)
    return project


@pytest.fixture(scope="session")
def source_parser() -> SourceParser:
    """One parser for the whole session; grammar loading is not free."""
    return SourceParser()


@pytest.fixture
def app_diff() -> str:
    """Diff of src/app.ts touching greet() and Greeter.greet()."""
    return """diff --git a/src/app.ts b/src/app.ts
index 1111111..2222222 100644
--- a/src/app.ts
+++ b/src/app.ts
@@ -5,3 +5,3 @@ import lodash from "lodash";
 export function greet(first: string, last: string): string {
-  const name = first + " " + last;
+  const name = formatName(first, last);
   return `Hello, ${name}!`;
@@ -20,3 +20,3 @@ export class Greeter {
   greet(name: string): string {
-    return this.prefix + name;
+    return this.prefix + slugify(name);
   }
"""


@pytest.fixture
def compute_source() -> str:
    """Module whose ``compute`` function spans lines 8-15."""
    return """const a = 1;
const b = 2;

// helpers

export const c = 3;

function compute(x: number): number {
  const doubled = x * 2;
  const tripled = x * 3;
  const total = doubled + tripled;
  if (total > 10) {
    return total;
  }
}
"""
