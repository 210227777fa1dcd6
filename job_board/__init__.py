"""Job board package.

The package is the service layer of a community job board whose data lives in
a hosted PostgREST row store:
- `models.py` defines the stable schema and parses store rows at one seam.
- `store/` contains the record store contract and its backends.
- `lifecycle.py` moves listings through review, publication and expiry.
- `listings.py` serves the public and admin reads.
- `markdown.py` and `linkedin.py` are pure text helpers used by the pages.
"""
