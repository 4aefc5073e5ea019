"""Cross-cutting helpers: logging, schemas, problem details."""
