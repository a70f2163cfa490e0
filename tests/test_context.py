"""Tests for mode detection, root resolution, Context construction and path resolution."""

import pytest

from ecosync.config import get_default_config, merge_configs
from ecosync.context import Context, Mode, build_context, detect_mode, resolve_root
from ecosync.exit_codes import ConfigError
from ecosync.paths import (
    build_config_path,
    build_manifest_path,
    cname_content,
    config_dir_for,
    content_path,
    ecosystem_refs,
    ensure_gitignore,
    feed_url,
    is_port_available,
    output_dir_for,
    port_for,
    project_docs_url,
    project_site_dir,
    project_url,
    sitemap_url,
    url_for,
)


class TestDetectMode:
    """Tests for detect_mode precedence."""

    def test_default_is_production(self):
        assert detect_mode([], {}) == Mode.PRODUCTION

    def test_explicit_argument(self):
        assert detect_mode(["build", "--mode=local"], {}) == Mode.LOCAL
        assert detect_mode(["--mode", "production"], {"WEBSITE_MODE": "local"}) == Mode.PRODUCTION

    def test_env_var(self):
        assert detect_mode([], {"WEBSITE_MODE": "local"}) == Mode.LOCAL
        assert detect_mode([], {"WEBSITE_MODE": "dev"}) == Mode.LOCAL

    def test_env_var_beats_ci(self):
        assert detect_mode([], {"WEBSITE_MODE": "local", "CI": "true"}) == Mode.LOCAL

    def test_ci_forces_production(self):
        assert detect_mode([], {"CI": "true", "NODE_ENV": "development"}) == Mode.PRODUCTION
        assert detect_mode([], {"GITHUB_ACTIONS": "true"}) == Mode.PRODUCTION

    def test_node_env_hint(self):
        assert detect_mode([], {"NODE_ENV": "development"}) == Mode.LOCAL
        assert detect_mode([], {"NODE_ENV": "production"}) == Mode.PRODUCTION

    def test_invalid_mode_is_config_error(self):
        with pytest.raises(ConfigError):
            detect_mode(["--mode=staging"], {})


class TestMode:

    def test_local_properties(self):
        assert Mode.LOCAL.output_suffix == "site_local"
        assert Mode.LOCAL.config_suffix == "local"
        assert Mode.LOCAL.jekyll_env == "development"
        assert not Mode.LOCAL.emits_cname

    def test_production_properties(self):
        assert Mode.PRODUCTION.output_suffix == "site"
        assert Mode.PRODUCTION.scheme == "https"
        assert Mode.PRODUCTION.emits_cname


class TestResolveRoot:
    """Tests for resolve_root."""

    def test_finds_root_from_nested_directory(self, tmp_path):
        (tmp_path / "causality.in").mkdir()
        nested = tmp_path / "getHarsh" / "scripts" / "deep"
        nested.mkdir(parents=True)
        assert resolve_root(nested) == tmp_path

    def test_falls_back_to_start(self, tmp_path):
        start = tmp_path / "empty"
        start.mkdir()
        assert resolve_root(start, max_levels=1) == start

    def test_bounded_search(self, tmp_path):
        (tmp_path / "causality.in").mkdir()
        nested = tmp_path / "a" / "b" / "c"
        nested.mkdir(parents=True)
        assert resolve_root(nested, max_levels=2) == nested


class TestBuildContext:
    """Tests for build_context."""

    def test_from_config(self, tmp_path):
        config = merge_configs(get_default_config(), {
            'ecosystem': {'root': str(tmp_path)},
            'ports': {'base_port': 5000, 'range': 100},
        })
        ctx = build_context(config, args=["--mode=local"])
        assert ctx.root == tmp_path
        assert ctx.mode == Mode.LOCAL
        assert ctx.base_port == 5000
        assert ctx.port_range == 100
        assert ctx.layout.engine == "getHarsh"

    def test_explicit_root_and_mode(self, tmp_path):
        ctx = build_context(get_default_config(), root=tmp_path, mode=Mode.PRODUCTION)
        assert ctx.root == tmp_path
        assert ctx.mode == Mode.PRODUCTION

    def test_env_drives_mode(self, tmp_path):
        ctx = build_context(get_default_config(), env={"WEBSITE_MODE": "local"}, root=tmp_path)
        assert ctx.mode == Mode.LOCAL

    def test_invalid_port_range(self, tmp_path):
        config = merge_configs(get_default_config(), {'ports': {'base_port': 65000, 'range': 1000}})
        with pytest.raises(ConfigError):
            build_context(config, root=tmp_path, mode=Mode.LOCAL)

    def test_registry_path(self, tmp_path):
        (tmp_path / "engine").mkdir()
        (tmp_path / "getHarsh").symlink_to(tmp_path / "engine")
        ctx = Context(root=tmp_path, mode=Mode.LOCAL)
        assert ctx.engine_dir == (tmp_path / "engine").resolve()
        assert ctx.registry_path == ctx.engine_dir / "build" / "temp" / "jekyll-ports.json"

    def test_registry_override(self, tmp_path):
        config = merge_configs(get_default_config(), {'ports': {'registry': str(tmp_path / "r.json")}})
        ctx = build_context(config, root=tmp_path, mode=Mode.LOCAL)
        assert ctx.registry_path == tmp_path / "r.json"

    def test_context_is_immutable(self, tmp_path):
        ctx = Context(root=tmp_path, mode=Mode.LOCAL)
        with pytest.raises(Exception):
            ctx.mode = Mode.PRODUCTION


class TestPaths:
    """Tests for the pure resolver functions."""

    def test_port_for_is_byte_sum(self):
        # a=97 .=46 i=105 n=110
        assert port_for("a.in") == 4000 + 358
        assert port_for("a.in", base_port=5000, port_range=100) == 5058

    def test_port_for_in_range(self):
        for domain in ("causality.in", "blog.metapology.in", "x.in"):
            assert 4000 <= port_for(domain) < 5000

    def test_url_for(self):
        assert url_for("a.in", Mode.LOCAL) == "http://localhost:4358"
        assert url_for("a.in", Mode.PRODUCTION) == "https://a.in"

    def test_derived_urls(self):
        assert feed_url("a.in", Mode.PRODUCTION) == "https://a.in/feed.xml"
        assert sitemap_url("a.in", Mode.PRODUCTION) == "https://a.in/sitemap.xml"
        assert project_docs_url("a.in", "tool", Mode.PRODUCTION) == "https://a.in/tool/docs/"
        assert project_url("a.in", "tool", Mode.PRODUCTION) == "https://a.in/tool/"
        assert project_url("a.in", "tool", Mode.LOCAL, base_port=5000, port_range=100) == \
            "http://localhost:5058/tool/"

    def test_cname(self):
        assert cname_content("a.in", Mode.PRODUCTION) == "a.in"
        assert cname_content("a.in", Mode.LOCAL) is None

    def test_output_dir(self, tmp_path):
        assert output_dir_for(tmp_path, "a.in", Mode.LOCAL) == tmp_path / "a.in" / "site_local"
        assert output_dir_for(tmp_path, "a.in", Mode.PRODUCTION) == tmp_path / "a.in" / "site"
        assert project_site_dir(tmp_path, "a.in", "tool", Mode.PRODUCTION) == \
            tmp_path / "a.in" / "PROJECTS" / "tool" / "site"

    def test_config_dir_created(self, tmp_path):
        path = config_dir_for(tmp_path / "build", "a.in", Mode.LOCAL)
        assert path == tmp_path / "build" / "configs" / "a.in" / "local"
        assert path.is_dir()

    def test_build_artifacts(self, tmp_path):
        assert build_manifest_path(tmp_path, "a.in", Mode.PRODUCTION) == \
            tmp_path / "manifests" / "a.in" / "production" / "manifest.json"
        assert build_manifest_path(tmp_path, "a.in", Mode.LOCAL, project="tool") == \
            tmp_path / "manifests" / "a.in" / "PROJECTS" / "tool" / "local" / "manifest.json"
        assert build_config_path(tmp_path, "b.in", Mode.LOCAL) == \
            tmp_path / "configs" / "b.in" / "local" / "config.json"

    def test_content_path(self, tmp_path):
        assert content_path(tmp_path, "getHarsh", "master_posts", "a.in") == \
            tmp_path / "getHarsh" / "master_posts" / "pages" / "a.in"

    def test_ecosystem_refs_excludes_current(self):
        refs = ecosystem_refs("a.in", ["b.in", "a.in", "blog.a.in"], Mode.PRODUCTION)
        assert [ref['name'] for ref in refs] == ["b.in", "blog.a.in"]
        assert refs[0]['manifest'] == "https://b.in/manifest.json"

    def test_is_port_available_detects_bound_port(self):
        import socket
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
            sock.bind(("127.0.0.1", 0))
            sock.listen(1)
            assert is_port_available(sock.getsockname()[1]) is False


class TestEnsureGitignore:

    def test_creates_file(self, tmp_path):
        added = ensure_gitignore(tmp_path)
        assert "site_local/" in added
        content = (tmp_path / ".gitignore").read_text()
        assert "site_local/" in content
        assert "# Added by ecosync" in content

    def test_keeps_existing_and_is_idempotent(self, tmp_path):
        (tmp_path / ".gitignore").write_text("node_modules/\nsite_local/\n")
        added = ensure_gitignore(tmp_path)
        assert "site_local/" not in added
        content = (tmp_path / ".gitignore").read_text()
        assert content.startswith("node_modules/\nsite_local/\n")
        assert ensure_gitignore(tmp_path) == []
        assert (tmp_path / ".gitignore").read_text() == content
