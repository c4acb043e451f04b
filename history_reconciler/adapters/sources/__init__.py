"""Raw payload source adapters implementing HistorySourcePort."""

from history_reconciler.adapters.sources.json_file_source import JSONFileHistorySource

__all__ = ["JSONFileHistorySource"]
