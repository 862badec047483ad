"""Tests for import specifier resolution."""

import json
import os
from pathlib import Path

from changelens.import_resolver import ImportResolver, load_jsonc


def _write(root: Path, rel: str, content: str = "export {};\n") -> Path:
    path = root / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


def _abs(path: Path) -> str:
    return os.path.abspath(path)


def test_load_jsonc_strips_comments_and_trailing_commas():
    text = '{\n  // line\n  "url": "http://example.com/*x*/",\n  /* block */ "list": [1, 2,],\n}'
    assert load_jsonc(text) == {"url": "http://example.com/*x*/", "list": [1, 2]}


class TestRelativeResolution:
    def test_extension_lookup(self, temp_dir: Path):
        app = _write(temp_dir, "src/app.ts")
        util = _write(temp_dir, "src/util.ts")
        resolver = ImportResolver(temp_dir)

        assert resolver.resolve(app, "./util") == _abs(util)

    def test_jsx_components_resolve(self, temp_dir: Path):
        app = _write(temp_dir, "src/App.tsx")
        button = _write(temp_dir, "src/Button.tsx")
        icon = _write(temp_dir, "src/Icon.jsx")
        resolver = ImportResolver(temp_dir)

        assert resolver.resolve(app, "./Button") == _abs(button)
        assert resolver.resolve(app, "./Icon") == _abs(icon)
        assert resolver.is_local(resolver.resolve(app, "./Button"))

    def test_ts_wins_over_tsx(self, temp_dir: Path):
        app = _write(temp_dir, "src/app.ts")
        plain = _write(temp_dir, "src/view.ts")
        _write(temp_dir, "src/view.tsx")
        resolver = ImportResolver(temp_dir)

        assert resolver.resolve(app, "./view") == _abs(plain)

    def test_exact_file_wins(self, temp_dir: Path):
        app = _write(temp_dir, "src/app.ts")
        data = _write(temp_dir, "src/data.js")
        resolver = ImportResolver(temp_dir)

        assert resolver.resolve(app, "./data.js") == _abs(data)

    def test_index_file(self, temp_dir: Path):
        app = _write(temp_dir, "src/app.ts")
        index = _write(temp_dir, "src/lib/index.ts")
        resolver = ImportResolver(temp_dir)

        assert resolver.resolve(app, "./lib") == _abs(index)

    def test_esm_js_suffix_points_at_ts(self, temp_dir: Path):
        app = _write(temp_dir, "src/app.ts")
        util = _write(temp_dir, "src/util.ts")
        resolver = ImportResolver(temp_dir)

        assert resolver.resolve(app, "./util.js") == _abs(util)

    def test_parent_directory(self, temp_dir: Path):
        app = _write(temp_dir, "src/feature/app.ts")
        shared = _write(temp_dir, "src/shared.ts")
        resolver = ImportResolver(temp_dir)

        assert resolver.resolve(app, "../shared") == _abs(shared)

    def test_missing_module_returns_specifier(self, temp_dir: Path):
        app = _write(temp_dir, "src/app.ts")
        resolver = ImportResolver(temp_dir)

        resolved = resolver.resolve(app, "./nope")
        assert resolved == "./nope"
        assert not resolver.is_local(resolved)


class TestAliases:
    def test_sample_project_paths(self, sample_ts_project_path: Path):
        resolver = ImportResolver(sample_ts_project_path)
        app = sample_ts_project_path / "src" / "app.ts"

        resolved = resolver.resolve(app, "@utils/math")
        assert resolved == _abs(sample_ts_project_path / "src" / "utils" / "math.ts")
        assert resolver.is_local(resolved)

    def test_bare_package_is_external(self, sample_ts_project_path: Path):
        resolver = ImportResolver(sample_ts_project_path)
        app = sample_ts_project_path / "src" / "app.ts"

        assert resolver.resolve(app, "lodash") == "lodash"
        assert not resolver.is_local("lodash")

    def test_base_url_without_paths(self, temp_dir: Path):
        _write(temp_dir, "tsconfig.json", json.dumps({"compilerOptions": {"baseUrl": "src"}}))
        app = _write(temp_dir, "src/pages/home.ts")
        helper = _write(temp_dir, "src/lib/helper.ts")
        resolver = ImportResolver(temp_dir)

        assert resolver.resolve(app, "lib/helper") == _abs(helper)

    def test_longest_prefix_wins(self, temp_dir: Path):
        _write(temp_dir, "tsconfig.json", json.dumps({
            "compilerOptions": {
                "baseUrl": ".",
                "paths": {"@/*": ["src/*"], "@/components/*": ["ui/components/*"]},
            }
        }))
        app = _write(temp_dir, "src/app.ts")
        button = _write(temp_dir, "ui/components/button.ts")
        resolver = ImportResolver(temp_dir)

        assert resolver.resolve(app, "@/components/button") == _abs(button)

    def test_jsconfig_is_read(self, temp_dir: Path):
        _write(temp_dir, "jsconfig.json", '{ "compilerOptions": { "baseUrl": ".", "paths": { "~/*": ["lib/*"] } } }')
        app = _write(temp_dir, "main.js")
        util = _write(temp_dir, "lib/util.js")
        resolver = ImportResolver(temp_dir)

        assert resolver.resolve(app, "~/util") == _abs(util)

    def test_relative_extends(self, temp_dir: Path):
        _write(temp_dir, "tsconfig.base.json", json.dumps({
            "compilerOptions": {"baseUrl": ".", "paths": {"#core/*": ["core/*"]}}
        }))
        _write(temp_dir, "tsconfig.json", '{ "extends": "./tsconfig.base", "compilerOptions": { "strict": true } }')
        app = _write(temp_dir, "src/app.ts")
        core = _write(temp_dir, "core/engine.ts")
        resolver = ImportResolver(temp_dir)

        assert resolver.resolve(app, "#core/engine") == _abs(core)

    def test_missing_config_falls_back_to_relative(self, temp_dir: Path):
        app = _write(temp_dir, "src/app.ts")
        util = _write(temp_dir, "src/util.ts")
        resolver = ImportResolver(temp_dir)

        assert resolver.alias_config() is None
        assert resolver.resolve(app, "./util") == _abs(util)

    def test_unreadable_config_is_ignored(self, temp_dir: Path):
        _write(temp_dir, "tsconfig.json", "{ not json")
        app = _write(temp_dir, "src/app.ts")
        util = _write(temp_dir, "src/util.ts")
        resolver = ImportResolver(temp_dir)

        assert resolver.alias_config() is None
        assert resolver.resolve(app, "./util") == _abs(util)

    def test_doubled_source_dir_is_collapsed(self, temp_dir: Path):
        _write(temp_dir, "tsconfig.json", json.dumps({
            "compilerOptions": {"baseUrl": "src", "paths": {"@/*": ["src/*"]}}
        }))
        app = _write(temp_dir, "src/app.ts")
        util = _write(temp_dir, "src/util.ts")
        resolver = ImportResolver(temp_dir)

        assert resolver.resolve(app, "@/util") == _abs(util)


class TestExclusions:
    def test_vendor_directory_is_never_resolved(self, temp_dir: Path):
        _write(temp_dir, "tsconfig.json", json.dumps({"compilerOptions": {"baseUrl": "node_modules"}}))
        _write(temp_dir, "node_modules/lodash/index.js", "module.exports = {};\n")
        app = _write(temp_dir, "src/app.ts")
        resolver = ImportResolver(temp_dir)

        assert resolver.resolve(app, "lodash") == "lodash"
        assert resolver.resolve(app, "../node_modules/lodash/index.js") == "../node_modules/lodash/index.js"

    def test_build_output_is_excluded(self, temp_dir: Path):
        app = _write(temp_dir, "src/app.ts")
        _write(temp_dir, "dist/app.js")
        resolver = ImportResolver(temp_dir)

        assert resolver.resolve(app, "../dist/app") == "../dist/app"
        assert resolver.is_excluded(temp_dir / "dist" / "app.js")

    def test_only_parts_below_root_count(self, temp_dir: Path):
        """A project that itself lives under a 'build' directory still resolves."""
        root = temp_dir / "build" / "project"
        app = _write(root, "src/app.ts")
        util = _write(root, "src/util.ts")
        resolver = ImportResolver(root)

        assert not resolver.is_excluded(util)
        assert resolver.resolve(app, "./util") == _abs(util)

    def test_custom_excluded_dirs(self, temp_dir: Path):
        app = _write(temp_dir, "src/app.ts")
        _write(temp_dir, "src/generated/api.ts")
        resolver = ImportResolver(temp_dir, excluded_dirs=("generated",))

        assert resolver.resolve(app, "./generated/api") == "./generated/api"


def test_collapse_duplicate_segments(temp_dir: Path):
    resolver = ImportResolver(temp_dir)
    path = os.path.join(str(temp_dir), "src", "src", "src", "a")
    assert resolver.collapse_duplicate_segments(path) == os.path.join(str(temp_dir), "src", "a")
