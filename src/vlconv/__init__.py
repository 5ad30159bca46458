"""Video Library Converter - remux and transcode video libraries to MP4."""
