"""Field-level envelope encryption for journal content.

Learn: Title, content and insight summaries are stored as AES-256-GCM
envelopes (ciphertext + nonce + authentication tag). Mood and tags stay
plaintext — they are lower-sensitivity and used for filtering.
"""

from inkwell.crypto.codec import CipherConfig, EncryptionCodec, Envelope, is_envelope

__all__ = ["CipherConfig", "EncryptionCodec", "Envelope", "is_envelope"]
