from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import FastAPI, HTTPException, Request

from refscope import config
from refscope.analysis import AnalysisService
from refscope.errors import ModelBuildError, ProjectNotFoundError, ProjectNotReadyError, TargetNotFoundError
from refscope.lifecycle import LifecycleOrchestrator
from refscope.model import AnalysisRequest, AnalysisResult, ProjectDescriptor
from refscope.store import ProjectConfigStore

logger = logging.getLogger("refscope.api")


def create_app(
	store: Optional[ProjectConfigStore] = None,
	lifecycle_enabled: bool = config.LIFECYCLE_ENABLED,
) -> FastAPI:
	@asynccontextmanager
	async def lifespan(app: FastAPI):
		project_store = store or ProjectConfigStore(config.resolve_config_path())
		project_store.load()
		app.state.store = project_store
		app.state.service = AnalysisService(project_store)
		orchestrator = None
		if lifecycle_enabled:
			orchestrator = LifecycleOrchestrator(project_store)
			orchestrator.start()
		try:
			yield
		finally:
			if orchestrator is not None:
				await asyncio.to_thread(orchestrator.stop)

	app = FastAPI(title="refscope", lifespan=lifespan)

	@app.get("/projects", response_model=List[ProjectDescriptor])
	def list_projects(request: Request) -> List[ProjectDescriptor]:
		return request.app.state.store.list()

	@app.get("/projects/{name}", response_model=ProjectDescriptor)
	def get_project(name: str, request: Request) -> ProjectDescriptor:
		descriptor = request.app.state.store.get(name)
		if descriptor is None:
			raise HTTPException(status_code=404, detail=f"Project not found: {name}")
		return descriptor

	@app.post("/analyze", response_model=AnalysisResult)
	def analyze(req: AnalysisRequest, request: Request) -> AnalysisResult:
		service: AnalysisService = request.app.state.service
		try:
			return service.analyze(req.project_name, req.code_snippet)
		except (ProjectNotFoundError, TargetNotFoundError) as e:
			raise HTTPException(status_code=404, detail=str(e))
		except ProjectNotReadyError as e:
			raise HTTPException(status_code=409, detail=str(e))
		except ModelBuildError as e:
			raise HTTPException(status_code=500, detail=str(e))

	return app


app = create_app()
