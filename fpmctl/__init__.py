"""fpmctl - launch, watch and stop a single php-fpm master."""

__version__ = "0.1.0"
