"""
Evaluation infrastructure -- 20 generic eval tasks + graders.

Run evals: pytest evals/ -v
Run regression only: pytest evals/regression/ -v
Run capability only: pytest evals/tasks/ -v

Reference: docs/REFERENCES.md (Anthropic Evals guide)
"""
