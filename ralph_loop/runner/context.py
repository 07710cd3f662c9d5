"""
Run context and state directory management.

Per-run artifacts (run log, agent transcripts, lock) live in
<ralph_dir>/.ralph/. That directory carries its own `*` .gitignore so
that `git add -A` never commits it and `git clean -fd` never removes it.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from ralph_loop.lib.config import RalphConfig

STATE_DIRNAME = ".ralph"


def ensure_state_dir(ralph_dir: Path) -> Path:
    state_dir = ralph_dir / STATE_DIRNAME
    state_dir.mkdir(parents=True, exist_ok=True)
    gitignore = state_dir / ".gitignore"
    if not gitignore.exists():
        gitignore.write_text("*\n")
    return state_dir


@dataclass
class RunContext:
    """Context for one `ralph run` / `ralph once` invocation."""
    run_id: str
    run_dir: Path
    config: RalphConfig
    start_time: datetime = field(default_factory=datetime.now)
    # story_id -> {stage -> {"status", "duration_seconds", "notes"}}
    stages: dict = field(default_factory=dict)

    @classmethod
    def create(cls, config: RalphConfig, mode: str = "run") -> 'RunContext':
        """Create a new run context with a fresh run directory."""
        state_dir = ensure_state_dir(config.ralph_dir)
        run_id = f"{datetime.now().strftime('%Y%m%d-%H%M%S')}_{mode}"

        run_dir = state_dir / "runs" / run_id
        run_dir.mkdir(parents=True, exist_ok=True)
        return cls(run_id=run_id, run_dir=run_dir, config=config)

    @property
    def state_dir(self) -> Path:
        return self.config.ralph_dir / STATE_DIRNAME

    def log(self, message: str):
        """Append to run log."""
        timestamp = datetime.now().isoformat()
        with open(self.run_dir / "run.log", "a") as f:
            f.write(f"[{timestamp}] {message}\n")

    def record_stage(self, story_id: str, stage: str, status: str, duration: float, notes: str = ""):
        self.stages.setdefault(story_id, {})[stage] = {
            "status": status,
            "duration_seconds": round(duration, 2),
            "notes": notes,
        }

    def write_result(self, summary: dict):
        """Write result.json for the run."""
        end_time = datetime.now()
        result = {
            "run_id": self.run_id,
            "timestamps": {
                "started": self.start_time.isoformat(),
                "ended": end_time.isoformat(),
                "duration_seconds": (end_time - self.start_time).total_seconds(),
            },
            "summary": summary,
            "stages": self.stages,
        }
        (self.run_dir / "result.json").write_text(json.dumps(result, indent=2) + "\n")
