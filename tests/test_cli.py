"""tests for the command line entrypoint."""

import json

import pytest

from branchform.__main__ import main


@pytest.fixture
def form_file(sample_graph, temp_dir):
    path = temp_dir / "sample.json"
    sample_graph.save(path)
    return path


class TestShow:
    def test_outline(self, form_file, capsys):
        main(["show", str(form_file), "--format", "outline"])
        out = capsys.readouterr().out
        assert out.splitlines()[0] == "[text] Your name? <Q1>"

    def test_mermaid(self, form_file, capsys):
        main(["show", str(form_file), "-f", "mermaid"])
        assert capsys.readouterr().out.startswith("flowchart TD")

    def test_tree(self, form_file, capsys):
        main(["show", str(form_file)])
        assert "Phone number?" in capsys.readouterr().out

    def test_missing_file(self, temp_dir):
        with pytest.raises(SystemExit) as exc:
            main(["show", str(temp_dir / "nope.json")])
        assert exc.value.code == 1


class TestValidate:
    def test_clean_form(self, form_file, capsys):
        main(["validate", str(form_file)])
        assert "ok" in capsys.readouterr().out

    def test_orphan_warning(self, sample_graph, temp_dir, capsys):
        sample_graph.steps["C1"].choices[0].next_step_id = None
        path = temp_dir / "orphan.json"
        sample_graph.save(path)

        main(["validate", str(path)])
        assert "orphan step: Q3" in capsys.readouterr().out

        with pytest.raises(SystemExit):
            main(["validate", "--strict", str(path)])

    def test_schema_error(self, temp_dir):
        path = temp_dir / "bad.json"
        path.write_text(json.dumps({"rootStepId": "a", "steps": {}}))
        with pytest.raises(SystemExit) as exc:
            main(["validate", str(path)])
        assert exc.value.code == 1
