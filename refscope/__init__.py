"""refscope: project lifecycle management and code-reference analysis for Java sources.

Modules:
- store.py: Declarative project configuration and in-memory project status.
- sources.py / build.py / lifecycle.py: Sync, compile and drive projects to READY.
- fs_scan.py / classpath.py: Source discovery and classpath inference.
- java_model.py / java_parse.py: tree-sitter based source model.
- resolve.py / references.py: Target lookup and TO/FROM reference collection.
- analysis.py: Request-level analysis against configured projects.
- summarize.py: Short textual summaries of results and projects.
"""

__all__ = [
	"analysis",
	"build",
	"classpath",
	"config",
	"errors",
	"fs_scan",
	"java_model",
	"java_parse",
	"lifecycle",
	"model",
	"references",
	"resolve",
	"sources",
	"store",
	"summarize",
]
