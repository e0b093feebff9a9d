"""AWS session construction with optional STS assume role."""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError, NoCredentialsError

from eks_pause.core.config import Config
from eks_pause.core.exceptions import AuthenticationError


logger = logging.getLogger(__name__)


class SessionProvider:
    """Builds boto3 sessions for the configured region.

    Uses the default credential chain, or assumes ``config.role_arn`` via STS
    when one is configured.
    """

    def __init__(self, config: Config):
        self.config = config
        self._cached_credentials: Optional[Dict[str, Any]] = None
        self._credentials_expiry: Optional[datetime] = None

    def get_session(self) -> boto3.Session:
        """Get an authenticated AWS session.

        Raises:
            AuthenticationError: If role assumption fails.
        """
        if not self.config.role_arn:
            return boto3.Session(region_name=self.config.region)

        credentials = self._get_credentials(self.config.role_arn)
        return boto3.Session(
            aws_access_key_id=credentials['AccessKeyId'],
            aws_secret_access_key=credentials['SecretAccessKey'],
            aws_session_token=credentials['SessionToken'],
            region_name=self.config.region
        )

    def verify_credentials(self, session: Optional[boto3.Session] = None) -> Dict[str, Any]:
        """Check that credentials work by calling STS GetCallerIdentity.

        Returns:
            The caller identity response.

        Raises:
            AuthenticationError: If no usable credentials are available.
        """
        session = session or self.get_session()
        try:
            identity = session.client('sts').get_caller_identity()
            logger.info(f"Authenticated as {identity.get('Arn')}")
            return identity
        except NoCredentialsError:
            raise AuthenticationError(
                "No AWS credentials found. Please configure your AWS credentials using:\n"
                "1. AWS CLI: aws configure\n"
                "2. Environment variables: AWS_ACCESS_KEY_ID, AWS_SECRET_ACCESS_KEY\n"
                "3. AWS SSO: aws sso login"
            )
        except (ClientError, BotoCoreError) as e:
            raise AuthenticationError(f"AWS credentials are not usable: {e}")

    def _get_credentials(self, role_arn: str) -> Dict[str, Any]:
        """Get AWS credentials by assuming the specified IAM role.

        Raises:
            AuthenticationError: If role assumption fails.
        """
        if self._cached_credentials and self._credentials_expiry:
            # 5 minute buffer before expiry
            if datetime.utcnow() < (self._credentials_expiry - timedelta(minutes=5)):
                logger.debug("Using cached AWS credentials")
                return self._cached_credentials

        try:
            logger.info(f"Assuming IAM role: {role_arn}")
            sts_client = boto3.client('sts', region_name=self.config.region)
            response = sts_client.assume_role(
                RoleArn=role_arn,
                RoleSessionName='eks-pause-session',
                DurationSeconds=3600
            )

            credentials = response['Credentials']
            self._cached_credentials = credentials
            self._credentials_expiry = credentials['Expiration'].replace(tzinfo=None)
            return credentials

        except ClientError as e:
            error_code = e.response.get('Error', {}).get('Code', 'Unknown')
            error_message = e.response.get('Error', {}).get('Message', str(e))

            if error_code == 'AccessDenied':
                raise AuthenticationError(
                    f"Access denied when assuming role {role_arn}. "
                    "Check that the role exists and that its trust policy allows your credentials."
                )
            raise AuthenticationError(
                f"Failed to assume IAM role {role_arn}: {error_code} - {error_message}"
            )
        except NoCredentialsError:
            raise AuthenticationError("No AWS credentials found to assume the IAM role with.")
        except BotoCoreError as e:
            raise AuthenticationError(f"AWS configuration error: {e}")

    def clear_cached_credentials(self) -> None:
        """Clear any cached credentials to force fresh authentication."""
        self._cached_credentials = None
        self._credentials_expiry = None
