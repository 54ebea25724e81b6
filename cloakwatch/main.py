"""Main entry point for CloakWatch."""

from .pipeline.runner import main, run_pipeline

__all__ = ["main", "run_pipeline"]

if __name__ == "__main__":
    main()
