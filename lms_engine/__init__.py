"""Assessment & progress engine for the learning-management platform."""
