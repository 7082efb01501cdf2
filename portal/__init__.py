"""CPA firm client onboarding and practice-management API."""
