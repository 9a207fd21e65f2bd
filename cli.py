from __future__ import annotations

import argparse
import json
import logging
import os

import uvicorn

from refscope import config
from refscope.analysis import analyze_path
from refscope.lifecycle import LifecycleOrchestrator
from refscope.store import ProjectConfigStore
from refscope.summarize import summarize_projects, summarize_result


def _load_store(args: argparse.Namespace) -> ProjectConfigStore:
	store = ProjectConfigStore(config.resolve_config_path(args.config))
	store.load()
	return store


def cmd_analyze(args: argparse.Namespace) -> None:
	root = os.path.abspath(args.path)
	result = analyze_path(root, args.snippet)
	print(json.dumps(result.model_dump(mode="json", by_alias=True), indent=2))
	print(summarize_result(result))


def cmd_projects(args: argparse.Namespace) -> None:
	store = _load_store(args)
	projects = store.list()
	if args.json:
		print(json.dumps([p.model_dump(mode="json") for p in projects], indent=2))
	else:
		print(summarize_projects(projects))


def cmd_lifecycle(args: argparse.Namespace) -> None:
	store = _load_store(args)
	orchestrator = LifecycleOrchestrator(store)
	try:
		if args.once:
			print(summarize_projects(orchestrator.run_once()))
			return
		orchestrator.start()
		try:
			while not orchestrator.wait_stopped(3600):
				pass
		except KeyboardInterrupt:
			pass
	finally:
		orchestrator.stop()


def cmd_serve(args: argparse.Namespace) -> None:
	uvicorn.run("api:app", host=args.host, port=args.port, reload=args.reload, log_level=config.LOG_LEVEL.lower())


def main() -> None:
	parser = argparse.ArgumentParser(prog="refscope")
	parser.add_argument("--log-level", default=config.LOG_LEVEL, help="Logging level (default: %(default)s)")
	sub = parser.add_subparsers(dest="cmd", required=True)

	pa = sub.add_parser("analyze", help="Find references to and from a Java element in a source tree")
	pa.add_argument("path", help="Path to the Java project root")
	pa.add_argument("snippet", help="Target, e.g. com.acme.Foo or com.acme.Foo#bar(int,String)")
	pa.set_defaults(func=cmd_analyze)

	pp = sub.add_parser("projects", help="Load the project configuration and list projects")
	pp.add_argument("--config", default=None, help="Project configuration file")
	pp.add_argument("--json", action="store_true", help="Print descriptors as JSON")
	pp.set_defaults(func=cmd_projects)

	pl = sub.add_parser("lifecycle", help="Sync and build configured projects")
	pl.add_argument("--config", default=None, help="Project configuration file")
	pl.add_argument("--once", action="store_true", help="Run a single pass and print statuses")
	pl.set_defaults(func=cmd_lifecycle)

	ps = sub.add_parser("serve", help="Run FastAPI server")
	ps.add_argument("--host", default=config.HOST)
	ps.add_argument("--port", type=int, default=config.PORT)
	ps.add_argument("--reload", action="store_true")
	ps.set_defaults(func=cmd_serve)

	args = parser.parse_args()
	logging.basicConfig(
		level=getattr(logging, args.log_level.upper(), logging.INFO),
		format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
	)
	args.func(args)


if __name__ == "__main__":
	main()
