"""Label-driven delivery workflow automation for GitHub repositories.

This package implements the Stone event routing and CI orchestration core:
- GitHub webhook parsing and label-based event routing
- Rate-limit aware retry of event processing
- Short-circuiting test pipeline with build and deployment stages
- Status reporting through issue comments and commit statuses
"""
