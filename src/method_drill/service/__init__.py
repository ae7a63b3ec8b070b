"""Analysis service facade"""

from .analysis_service import AnalysisService, create_llm_client, create_oracle

__all__ = ["AnalysisService", "create_llm_client", "create_oracle"]
