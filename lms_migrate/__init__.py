"""
Course Platform Migration Toolkit

Operational tooling for moving a learning-management deployment between
hosting accounts.

Supports:
- Re-uploading attachment, image and video files between file-storage accounts
- Copying the relational tables (users, courses, chapters, purchases, quizzes)
  between two Postgres instances with upsert semantics
- Bounded-concurrency batches with a fixed delay between batches
- Machine-readable JSON reports and per-table row count verification
"""

__version__ = "0.1.0"
