"""Tests for the SQL deploy script."""

from scripts.deploy_sql import deploy_file, deploy_files, load_sql


def _write(tmp_path, name, text):
    path = tmp_path / name
    path.write_text(text, encoding="utf-8")
    return path


class TestLoadSql:
    def test_strips_comment_lines(self, tmp_path):
        path = _write(tmp_path, "f.sql", "-- header\nCREATE VIEW v AS\n  -- inline\nSELECT 1;\n")
        assert load_sql(path) == "CREATE VIEW v AS\nSELECT 1;"

    def test_comments_only(self, tmp_path):
        assert load_sql(_write(tmp_path, "empty.sql", "-- nothing\n\n")) is None


class TestDeploy:
    def test_sends_file_through_rpc(self, tmp_path, supabase_client):
        path = _write(tmp_path, "v.sql", "SELECT 1;")
        assert deploy_file(path, client=supabase_client) is True
        supabase_client.rpc.assert_called_once()
        assert supabase_client.rpc.call_args[0][1] == {"query_text": "SELECT 1;"}

    def test_dry_run(self, tmp_path, supabase_client):
        path = _write(tmp_path, "v.sql", "SELECT 1;")
        assert deploy_file(path, dry_run=True, client=supabase_client) is True
        supabase_client.rpc.assert_not_called()

    def test_missing_file(self, tmp_path, supabase_client):
        assert deploy_file(tmp_path / "nope.sql", client=supabase_client) is False

    def test_empty_file_is_not_a_failure(self, tmp_path, supabase_client):
        path = _write(tmp_path, "c.sql", "-- only comments")
        assert deploy_file(path, client=supabase_client) is True
        supabase_client.rpc.assert_not_called()

    def test_counts_failures(self, tmp_path, supabase_client):
        good = _write(tmp_path, "good.sql", "SELECT 1;")
        bad = _write(tmp_path, "bad.sql", "SELEC 1;")

        def execute_for(name, params):
            result = supabase_client.rpc.return_value
            if params["query_text"].startswith("SELEC "):
                result.execute.side_effect = Exception("syntax error")
            else:
                result.execute.side_effect = None
            return result

        supabase_client.rpc.side_effect = execute_for
        assert deploy_files([good, bad, tmp_path / "missing.sql"], client=supabase_client) == 2
