"""bucketmirror - replicate local repository artifacts to object-storage buckets."""

__version__ = "0.1.0"
