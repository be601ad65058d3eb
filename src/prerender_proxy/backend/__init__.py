"""Reference backend serving the prerender, sitemap and script registry endpoints."""
