from newsdesk.models.news import Article, Candidate, MergeResult, PaginationInfo, RawCandidate

__all__ = ["Article", "Candidate", "MergeResult", "PaginationInfo", "RawCandidate"]
