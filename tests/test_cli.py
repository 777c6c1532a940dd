import json

import pytest
from click.testing import CliRunner

import jobrec.cli as cli_module
from jobrec.cli import main
from jobrec.criteria import CriteriaExtractor


@pytest.fixture
def runner(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(cli_module.console, "width", 200)
    return CliRunner()


@pytest.fixture
def postings_file(tmp_path, job_records):
    path = tmp_path / "jobs.json"
    path.write_text(json.dumps(job_records))
    return str(path)


@pytest.fixture
def fake_services(monkeypatch, make_engine):
    monkeypatch.setattr("jobrec.matching.get_recommendation_engine", lambda records: make_engine(records))


def test_search_prints_ranked_results(runner, postings_file, fake_services):
    result = runner.invoke(main, ["search", "Engineer", "--postings", postings_file])

    assert result.exit_code == 0, result.output
    assert "Backend Engineer" in result.output
    assert "No results" not in result.output


def test_search_shows_location_and_salary(runner, postings_file, fake_services):
    result = runner.invoke(main, ["search", "Engineer", "--postings", postings_file])

    assert result.exit_code == 0, result.output
    assert "Location" in result.output
    assert "Salary" in result.output
    assert "Remote" in result.output
    assert "$140k" in result.output


def test_show_criteria_classifies_query_once(runner, postings_file, fake_services, classifier):
    result = runner.invoke(main, ["search", "Engineer", "--show-criteria", "--postings", postings_file])

    assert result.exit_code == 0, result.output
    assert "Inferred Filter Criteria" in result.output
    assert classifier.calls == ["Engineer"]


def test_search_reports_no_results(runner, postings_file, fake_services, monkeypatch):
    monkeypatch.setattr("jobrec.matching.RecommendationEngine.recommend_from_query",
                        lambda self, text, top_k=3, criteria=None: [])

    result = runner.invoke(main, ["search", "anything", "--postings", postings_file])

    assert result.exit_code == 0
    assert "No results found" in result.output


def test_search_with_missing_postings_aborts(runner, tmp_path, fake_services):
    result = runner.invoke(main, ["search", "Engineer", "--postings", str(tmp_path / "missing.json")])

    assert result.exit_code != 0
    assert "Error during search" in result.output


def test_ingest_is_idempotent(runner, postings_file, fake_services):
    first = runner.invoke(main, ["ingest", "--postings", postings_file])
    second = runner.invoke(main, ["ingest", "--postings", postings_file])

    assert "Ingested 5 job postings" in first.output
    assert "Nothing ingested" in second.output


def test_criteria_command(runner, classifier, monkeypatch):
    monkeypatch.setattr("jobrec.criteria.get_criteria_extractor", lambda: CriteriaExtractor(classifier))

    result = runner.invoke(main, ["criteria", "remote", "Acme"])

    assert result.exit_code == 0, result.output
    assert "remote" in result.output
    assert "Acme" in result.output
