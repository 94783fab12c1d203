from imaging.cache import ScoreCache
from imaging.dedup import Deduplicator, compute_fingerprint, similarity
from imaging.matcher import MatchEstimator, MatchResult
from imaging.scorer import ImageQualityScorer, QualityReport
from imaging.url_filter import FilterDecision, UrlFilter
