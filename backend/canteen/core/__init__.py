"""Core utilities: configuration, security, errors and cross-cutting helpers."""
