"""Provider adapters.

One adapter per upstream provider, all satisfying `ProviderAdapter`:
- No prompt/completion logging in this package.
- Adapters hold configuration only (base URL, credential, default model, timeout).
- Every failure is raised as `UpstreamError`; adapters never retry.
"""
