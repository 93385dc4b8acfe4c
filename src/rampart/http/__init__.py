"""HTTP primitives: request, response, headers, cookies, and body parsing."""
