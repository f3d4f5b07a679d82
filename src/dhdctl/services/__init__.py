"""Service layer — orchestration returning ServiceResult."""
