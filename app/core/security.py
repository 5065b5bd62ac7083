"""
Security utilities and input validation for the Testimonial Moderation API.

This module provides rate limiting for public submission endpoints, input
sanitation for testimonial text, and the optional admin API key check used
by moderation routes.
"""

import re
import time
from typing import Dict, Any, Optional, Tuple
from fastapi import HTTPException, Request, Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from app.core.config import settings
from app.core.logger import logger
from app.core.exceptions import RateLimitException

# Security configuration
MAX_CONTENT_LENGTH = 5000  # characters per testimonial
RATE_LIMIT_REQUESTS = 100  # requests per window
RATE_LIMIT_WINDOW = 3600  # seconds (1 hour)

# In-memory rate limiting (in production, use Redis)
rate_limit_storage: Dict[str, Dict[str, Any]] = {}

# Security scheme
security = HTTPBearer(auto_error=False)

def validate_text_content(content: str) -> Tuple[bool, Optional[str]]:
    """
    Validate testimonial text for basic security.

    Length limits are enforced separately so that oversized content can be
    reported with ContentTooLargeException.
    
    Args:
        content: Text content to validate
        
    Returns:
        Tuple of (is_valid, error_message)
    """
    if not content or not content.strip():
        return False, "Content cannot be empty"
    
    # Check for potential XSS attempts
    dangerous_patterns = [
        r'<script[^>]*>.*?</script>',
        r'javascript:',
        r'vbscript:',
        r'onload\s*=',
        r'onerror\s*=',
        r'onclick\s*='
    ]
    
    for pattern in dangerous_patterns:
        if re.search(pattern, content, re.IGNORECASE):
            return False, "Content contains potentially dangerous patterns"
    
    return True, None

def check_rate_limit(client_ip: str) -> bool:
    """
    Check if client has exceeded rate limit.

    Args:
        client_ip: Client IP address
        
    Returns:
        True if within rate limit, False if exceeded
    """
    current_time = time.time()
    
    if client_ip not in rate_limit_storage:
        rate_limit_storage[client_ip] = {
            'requests': [],
            'window_start': current_time
        }
    
    client_data = rate_limit_storage[client_ip]
    
    # Remove old requests outside the window
    window_start = current_time - RATE_LIMIT_WINDOW
    client_data['requests'] = [
        req_time for req_time in client_data['requests'] 
        if req_time > window_start
    ]
    
    if len(client_data['requests']) >= RATE_LIMIT_REQUESTS:
        return False
    
    client_data['requests'].append(current_time)
    return True

def get_client_ip(request: Request) -> str:
    """
    Extract client IP address from request.
    
    Args:
        request: FastAPI request object
        
    Returns:
        Client IP address
    """
    # Check for forwarded headers first (for load balancers/proxies)
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    
    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip
    
    return request.client.host if request.client else "unknown"

def rate_limit_dependency(request: Request):
    """
    FastAPI dependency for rate limiting public submissions.
    
    Args:
        request: FastAPI request object
        
    Raises:
        RateLimitException: If rate limit exceeded
    """
    client_ip = get_client_ip(request)
    
    if not check_rate_limit(client_ip):
        log_security_event(
            "rate_limit_exceeded",
            client_ip,
            details={"limit": RATE_LIMIT_REQUESTS}
        )
        raise RateLimitException(
            f"Rate limit exceeded. Maximum {RATE_LIMIT_REQUESTS} requests per hour.",
            retry_after=RATE_LIMIT_WINDOW
        )

def sanitize_input(text: str) -> str:
    """
    Sanitize user input before it is stored or moderated.
    
    Args:
        text: Input text to sanitize
        
    Returns:
        Sanitized text
    """
    if not text:
        return ""
    
    text = text.replace('\x00', '')
    
    # Remove control characters except newlines and tabs
    text = re.sub(r'[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]', '', text)
    
    # Limit consecutive whitespace
    text = re.sub(r'\s{3,}', '  ', text)
    
    return text.strip()

def require_admin_api_key(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> bool:
    """
    Validate the admin API key for moderation endpoints.

    When no ``ADMIN_API_KEY`` is configured the check is disabled.
    
    Args:
        request: FastAPI request object
        credentials: HTTP authorization credentials
        
    Returns:
        True if the caller is allowed
        
    Raises:
        HTTPException: If API key is missing or invalid
    """
    if not settings.admin_api_key:
        return True
    
    if credentials is not None and credentials.credentials == settings.admin_api_key:
        return True
    
    log_security_event("invalid_admin_api_key", get_client_ip(request))
    raise HTTPException(
        status_code=401,
        detail={
            "error_code": "INVALID_API_KEY",
            "message": "Invalid or missing API key"
        }
    )

def log_security_event(
    event_type: str,
    client_ip: str,
    details: Optional[Dict[str, Any]] = None
) -> None:
    """
    Log security-related events.
    
    Args:
        event_type: Type of security event
        client_ip: Client IP address
        details: Additional event details
    """
    logger.warning(
        f"Security event: {event_type}",
        extra={
            "event_type": event_type,
            "client_ip": client_ip,
            "details": details or {}
        }
    )
