from textwrap import dedent

import pytest
from fastapi.testclient import TestClient

from api import create_app
from refscope.store import ProjectConfigStore


@pytest.fixture
def client(tmp_path, ab_project):
	config = tmp_path / "projects.yml"
	config.write_text(
		dedent(
			f"""
			projects:
			  - name: demo
			    sourceType: local
			    location: {ab_project}
			    status: READY
			  - name: pending
			    sourceType: local
			    location: {ab_project}
			"""
		).lstrip(),
		encoding="utf-8",
	)
	store = ProjectConfigStore(config, app_base_dir=tmp_path)
	with TestClient(create_app(store=store, lifecycle_enabled=False)) as c:
		yield c


def test_list_and_get_projects(client):
	res = client.get("/projects")
	assert res.status_code == 200
	assert {p["name"]: p["status"] for p in res.json()} == {"demo": "READY", "pending": "NOT_SYNCED"}

	assert client.get("/projects/demo").json()["source_kind"] == "local"
	assert client.get("/projects/nope").status_code == 404


def test_analyze(client):
	res = client.post("/analyze", json={"projectName": "demo", "codeSnippet": "pkg.ClassB#methodB()"})
	assert res.status_code == 200
	body = res.json()
	assert body["target"] == "pkg.ClassB#methodB()"
	assert body["references"] == [
		{
			"source": "self",
			"fullyQualifiedName": "pkg.ClassA#methodA()",
			"codeContext": body["references"][0]["codeContext"],
			"referenceType": "TO",
		}
	]
	assert "b.methodB();" in body["references"][0]["codeContext"]


def test_analyze_errors(client):
	assert client.post("/analyze", json={"projectName": "nope", "codeSnippet": "pkg.ClassA"}).status_code == 404
	assert client.post("/analyze", json={"projectName": "demo", "codeSnippet": "pkg.Missing"}).status_code == 404
	assert client.post("/analyze", json={"projectName": "pending", "codeSnippet": "pkg.ClassA"}).status_code == 409
	assert client.post("/analyze", json={"projectName": "demo"}).status_code == 422


def test_lifespan_runs_the_lifecycle(tmp_path):
	config = tmp_path / "projects.yml"
	config.write_text("projects: []\n", encoding="utf-8")
	store = ProjectConfigStore(config, app_base_dir=tmp_path)
	with TestClient(create_app(store=store, lifecycle_enabled=True)) as c:
		assert c.get("/projects").json() == []
