"""BuildLink 마일스톤/에스크로 백엔드 패키지입니다."""
