"""
Video Transcription Workflow Module

This module sequences the single-page transcription workflow that:
1. Accepts an uploaded video file
2. Extracts a mono 16 kHz MP3 audio track with FFmpeg
3. Encodes the audio as base64 for transport
4. Transcribes it through the Groq API
5. Renders downloadable WebVTT/SRT subtitles
"""

__version__ = "1.0.0"
